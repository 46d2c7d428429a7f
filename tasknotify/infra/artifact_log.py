# tasknotify/infra/artifact_log.py
from __future__ import annotations
from collections import deque
from threading import Lock
from typing import Optional

from tasknotify.core.dispatch.domain import DeliveryArtifact
from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_RETENTION = 200


class DeliveryArtifactLog:
    """
    Bounded in-memory record of recent QR fallback artifacts.

    The oldest entry is evicted once ``retention`` is reached.  Entries are
    lost on restart; the PNG files themselves stay on disk.

    ⚠️ Per-process: with N replicas each one keeps its own log.
    """

    def __init__(self, retention: int = DEFAULT_RETENTION):
        if retention < 1:
            raise ValueError("retention must be >= 1")
        self.retention = retention
        self._entries: deque[DeliveryArtifact] = deque(maxlen=retention)
        self._lock = Lock()

    def append(self, artifact: DeliveryArtifact) -> None:
        with self._lock:
            self._entries.append(artifact)

    def recent(self, limit: int = 10) -> list[DeliveryArtifact]:
        """Newest first, at most ``limit`` entries."""
        if limit <= 0:
            return []
        with self._lock:
            snapshot = list(self._entries)
        snapshot.reverse()
        return snapshot[:limit]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_artifact_log: Optional[DeliveryArtifactLog] = None


def get_artifact_log() -> DeliveryArtifactLog:
    """Process-wide artifact log, sized from settings on first use."""
    global _artifact_log
    if _artifact_log is None:
        from tasknotify.config import settings
        _artifact_log = DeliveryArtifactLog(max(1, settings.artifact_retention))
        logger.debug("Artifact log created (retention=%d)", settings.artifact_retention)
    return _artifact_log
