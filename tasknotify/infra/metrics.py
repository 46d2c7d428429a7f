# tasknotify/infra/metrics.py
"""
In-process metrics for the notifier.

Counters and latency samples keyed by ``name{label=value,...}``.  Exposed as
JSON on ``GET /metrics``; nothing is pushed anywhere.  Each process keeps
its own numbers.
"""
from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Optional

from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

# Latency samples kept per series; older samples fall off.
MAX_SAMPLES = 1000


class Counter:
    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


class Histogram:
    """Rolling window of observed values (dispatch durations, mostly)."""

    __slots__ = ("samples", "total_count")

    def __init__(self, max_samples: int = MAX_SAMPLES) -> None:
        self.samples: deque[float] = deque(maxlen=max_samples)
        self.total_count = 0

    def observe(self, value: float) -> None:
        self.samples.append(value)
        self.total_count += 1

    def get_stats(self) -> dict:
        ordered = sorted(self.samples)
        n = len(ordered)
        if n == 0:
            return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0}

        def nth(q: float) -> float:
            return ordered[min(int(n * q), n - 1)]

        return {
            "count": self.total_count,
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / n,
            "p50": nth(0.50),
            "p95": nth(0.95),
        }


def metric_key(name: str, labels: Optional[dict] = None) -> str:
    """``notification_outcomes_total{status=queued}``; labels sorted by name."""
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return name + "{" + rendered + "}"


class MetricsCollector:
    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: Optional[dict] = None) -> None:
        key = metric_key(name, labels)
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                counter = self._counters[key] = Counter()
            counter.inc(amount)

    def observe_histogram(self, name: str, value: float, labels: Optional[dict] = None) -> None:
        key = metric_key(name, labels)
        with self._lock:
            histogram = self._histograms.get(key)
            if histogram is None:
                histogram = self._histograms[key] = Histogram()
            histogram.observe(value)

    def get_metrics(self) -> dict:
        with self._lock:
            return {
                "counters": {key: c.value for key, c in self._counters.items()},
                "histograms": {key: h.get_stats() for key, h in self._histograms.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
        logger.info("Metrics reset")


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Record the wall time of a ``with`` block into a histogram."""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self._started: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._started is not None:
            observe_histogram(self.metric_name, time.perf_counter() - self._started, **self.labels)


class DispatchMetrics:
    """Named counters for the dispatcher, so metric names live in one place."""

    @staticmethod
    def dispatched(kind: str, recipients: int) -> None:
        inc_counter("notifications_dispatched_total", kind=kind)
        inc_counter("notification_recipients_total", recipients, kind=kind)

    @staticmethod
    def outcome(status: str) -> None:
        inc_counter("notification_outcomes_total", status=status)

    @staticmethod
    def health_checked(reachable: bool) -> None:
        inc_counter("agent_health_checks_total", reachable=str(reachable).lower())

    @staticmethod
    def send_failed(reason: str) -> None:
        inc_counter("agent_send_failures_total", reason=reason)

    @staticmethod
    def artifact_created() -> None:
        inc_counter("fallback_artifacts_total")

    @staticmethod
    def track_dispatch_time(kind: str) -> Timer:
        return Timer("dispatch_seconds", kind=kind)
