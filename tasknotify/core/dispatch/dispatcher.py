# tasknotify/core/dispatch/dispatcher.py
"""
NotificationDispatcher: fans one event out to its recipients.

Per batch:
1. One health probe of the delivery agent (never re-checked mid-batch).
2. Each recipient runs independently, at most ``max_concurrency`` at a time:
   normalize address → render → primary send (if the agent is up) →
   QR fallback (if the agent is down or the send failed).
3. An overall deadline bounds the batch; recipients still in flight when it
   expires are cancelled and reported as ``failed("timeout")``.

``dispatch`` always returns a complete ``DispatchResult`` whose outcomes are
index-aligned with the input recipients.  It does not raise.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from tasknotify.core.dispatch.addressing import (
    DEFAULT_ROUTING_PREFIX,
    LOCAL_NUMBER_LENGTH,
    mask_address,
    normalize_address,
)
from tasknotify.core.dispatch.domain import (
    DeliveryOutcome,
    DispatchResult,
    HealthState,
    Recipient,
)
from tasknotify.core.dispatch.errors import (
    AgentUnreachable,
    ArtifactPersistenceFailed,
    InvalidAddress,
    PrimaryDeliveryFailed,
    SubsystemDisabled,
)
from tasknotify.core.dispatch.events import NotificationEvent
from tasknotify.core.dispatch.ports import (
    ArtifactSink,
    FallbackChannel,
    HealthProbe,
    PrimaryChannel,
)
from tasknotify.core.dispatch.templates import MessageTemplater
from tasknotify.infra.logging_config import LogContext, get_logger
from tasknotify.infra.metrics import DispatchMetrics

logger = get_logger(__name__)

REASON_NO_ADDRESS = "no address"
REASON_TIMEOUT = "timeout"
REASON_INTERNAL = "internal error"


@dataclass(frozen=True)
class DispatchPolicy:
    """Knobs for one dispatcher. Timeouts are in seconds."""
    enabled: bool = True
    health_timeout: float = 3.0
    send_timeout: float = 5.0
    artifact_timeout: float = 8.0
    deadline: float = 30.0
    max_concurrency: int = 5
    default_prefix: str = DEFAULT_ROUTING_PREFIX
    local_length: int = LOCAL_NUMBER_LENGTH

    @classmethod
    def from_settings(cls, s: Any) -> "DispatchPolicy":
        return cls(
            enabled=s.notifications_enabled,
            health_timeout=s.health_timeout_seconds,
            send_timeout=s.send_timeout_seconds,
            artifact_timeout=s.artifact_timeout_seconds,
            deadline=s.dispatch_deadline_seconds,
            max_concurrency=max(1, s.max_concurrency),
            default_prefix=s.default_routing_prefix,
            local_length=s.local_number_length,
        )


class NotificationDispatcher:
    """
    Usage:
        dispatcher = NotificationDispatcher(
            probe=AgentHealthProbe(url),
            primary=AgentSender(url),
            fallback=QRCodeFallback(out_dir, "/whatsapp-qr"),
            artifact_log=get_artifact_log(),
        )
        result = await dispatcher.dispatch(event, recipients)
    """

    def __init__(
        self,
        *,
        probe: HealthProbe,
        primary: PrimaryChannel,
        fallback: FallbackChannel,
        artifact_log: ArtifactSink,
        templater: MessageTemplater | None = None,
        policy: DispatchPolicy | None = None,
    ):
        self._probe = probe
        self._primary = primary
        self._fallback = fallback
        self._artifact_log = artifact_log
        self._templater = templater or MessageTemplater()
        self._policy = policy or DispatchPolicy()

    @property
    def policy(self) -> DispatchPolicy:
        return self._policy

    async def dispatch(
        self,
        event: NotificationEvent,
        recipients: Iterable[Recipient],
        *,
        deadline: float | None = None,
    ) -> DispatchResult:
        """
        Deliver ``event`` to every recipient and report what happened.

        Args:
            event: The notification to send.
            recipients: Target users; order is preserved in the result.
            deadline: Overall budget in seconds (defaults to the policy's).
        """
        recipients = list(recipients)
        kind = getattr(event, "kind", type(event).__name__)
        log = LogContext(logger, event_kind=kind)

        if not self._policy.enabled:
            reason = SubsystemDisabled.reason
            log.info(
                "Notifications disabled, skipping %d recipient(s)", len(recipients),
            )
            return DispatchResult(
                any_delivered=False,
                outcomes=[DeliveryOutcome.skipped(r.id, reason) for r in recipients],
                disabled=True,
            )

        DispatchMetrics.dispatched(kind, len(recipients))

        if not recipients:
            log.info("No recipients for notification")
            return DispatchResult.from_outcomes([])

        budget = self._policy.deadline if deadline is None else max(0.0, deadline)
        loop = asyncio.get_running_loop()
        started = loop.time()

        with DispatchMetrics.track_dispatch_time(kind):
            health = await self._check_health(min(self._policy.health_timeout, budget))
            if not health.reachable:
                log.warning(
                    "%s: %s, using QR fallback for the whole batch",
                    AgentUnreachable.reason, health.error or "not connected",
                )

            remaining = max(0.0, budget - (loop.time() - started))
            outcomes = await self._fan_out(event, recipients, health, remaining, log)

        for outcome in outcomes:
            DispatchMetrics.outcome(outcome.status.value)

        result = DispatchResult.from_outcomes(outcomes, agent_reachable=health.reachable)
        log.info(
            "Dispatch finished: status=%s, counts=%s, elapsed=%.2fs",
            result.status.value, result.counts(), loop.time() - started,
        )
        return result

    # ------------------------------------------------------------------
    # Batch-level steps
    # ------------------------------------------------------------------

    async def _check_health(self, timeout: float) -> HealthState:
        """Run the probe once; a misbehaving probe counts as unreachable."""
        try:
            health = await asyncio.wait_for(self._probe.check(timeout), timeout=timeout)
        except asyncio.TimeoutError:
            health = HealthState(
                reachable=False,
                checked_at=datetime.now(timezone.utc),
                error="health probe timeout",
            )
        except Exception as exc:
            logger.error("Health probe raised: %s", type(exc).__name__, exc_info=True)
            health = HealthState(
                reachable=False,
                checked_at=datetime.now(timezone.utc),
                error=type(exc).__name__,
            )

        DispatchMetrics.health_checked(health.reachable)
        return health

    async def _fan_out(
        self,
        event: NotificationEvent,
        recipients: list[Recipient],
        health: HealthState,
        timeout: float,
        log: LogContext,
    ) -> list[DeliveryOutcome]:
        outcomes: list[DeliveryOutcome | None] = [None] * len(recipients)
        semaphore = asyncio.Semaphore(self._policy.max_concurrency)

        async def run(index: int, recipient: Recipient) -> None:
            async with semaphore:
                try:
                    outcomes[index] = await self._deliver_one(event, recipient, health, log)
                except Exception as exc:
                    log.error(
                        "Unexpected error for recipient %s: %s",
                        recipient.id, type(exc).__name__,
                        exc_info=True,
                    )
                    outcomes[index] = DeliveryOutcome.failed(recipient.id, REASON_INTERNAL)

        tasks = [
            asyncio.create_task(run(i, r), name=f"notify-{i}")
            for i, r in enumerate(recipients)
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                log.warning(
                    "Dispatch deadline (%.1fs) hit, abandoning %d recipient(s)",
                    timeout, len(pending),
                )
        finally:
            # Also runs when the caller cancels dispatch; no send may outlive it.
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        return [
            outcome if outcome is not None
            else DeliveryOutcome.failed(recipients[i].id, REASON_TIMEOUT)
            for i, outcome in enumerate(outcomes)
        ]

    # ------------------------------------------------------------------
    # Per-recipient state machine
    # ------------------------------------------------------------------

    async def _deliver_one(
        self,
        event: NotificationEvent,
        recipient: Recipient,
        health: HealthState,
        log: LogContext,
    ) -> DeliveryOutcome:
        rlog = log.bind(recipient_id=recipient.id)

        if not recipient.address:
            rlog.info("Recipient has no address, skipping")
            return DeliveryOutcome.skipped(recipient.id, REASON_NO_ADDRESS)

        try:
            address = normalize_address(
                recipient.address,
                default_prefix=self._policy.default_prefix,
                local_length=self._policy.local_length,
            )
        except InvalidAddress as exc:
            rlog.warning("Skipping recipient: %s", exc.detail)
            return DeliveryOutcome.skipped(recipient.id, exc.reason)

        message = self._templater.render(event, recipient_name=recipient.display_name)

        if health.reachable:
            reason = await self._try_primary(address, message, rlog)
            if reason is None:
                return DeliveryOutcome.delivered(recipient.id)
            rlog.warning(
                "Primary delivery to %s failed (%s), trying QR fallback",
                mask_address(address), reason,
            )

        return await self._try_fallback(recipient, address, message, rlog)

    async def _try_primary(self, address: str, message: str, rlog: LogContext) -> str | None:
        """Send through the agent. Returns None on success, else a failure reason."""
        try:
            await asyncio.wait_for(
                self._primary.send(address, message),
                timeout=self._policy.send_timeout,
            )
        except PrimaryDeliveryFailed as exc:
            DispatchMetrics.send_failed("rejected")
            return exc.detail
        except asyncio.TimeoutError:
            DispatchMetrics.send_failed("timeout")
            return "primary timeout"
        except Exception as exc:
            DispatchMetrics.send_failed("error")
            rlog.error("Primary channel raised: %s", type(exc).__name__, exc_info=True)
            return PrimaryDeliveryFailed.reason

        rlog.info("Delivered via agent to %s", mask_address(address), extra={"channel": "primary"})
        return None

    async def _try_fallback(
        self,
        recipient: Recipient,
        address: str,
        message: str,
        rlog: LogContext,
    ) -> DeliveryOutcome:
        try:
            artifact = await asyncio.wait_for(
                self._fallback.produce(address, message),
                timeout=self._policy.artifact_timeout,
            )
        except ArtifactPersistenceFailed as exc:
            rlog.error("QR fallback failed for %s: %s", mask_address(address), exc.detail)
            return DeliveryOutcome.failed(recipient.id, exc.reason)
        except asyncio.TimeoutError:
            rlog.error("QR fallback timed out for %s", mask_address(address))
            return DeliveryOutcome.failed(recipient.id, "artifact timeout")
        except Exception as exc:
            rlog.error("QR fallback raised: %s", type(exc).__name__, exc_info=True)
            return DeliveryOutcome.failed(recipient.id, ArtifactPersistenceFailed.reason)

        self._artifact_log.append(artifact)
        DispatchMetrics.artifact_created()
        rlog.info(
            "QR fallback produced for %s: %s",
            mask_address(address), artifact.artifact_path,
            extra={"channel": "fallback"},
        )
        return DeliveryOutcome.queued(recipient.id, artifact)
