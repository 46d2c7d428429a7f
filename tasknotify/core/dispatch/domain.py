# tasknotify/core/dispatch/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


# ============================================================================
# RECIPIENTS
# ============================================================================

@dataclass(frozen=True)
class Recipient:
    """A user to notify. ``address`` is the raw phone number, if any."""
    id: str
    display_name: Optional[str] = None
    address: Optional[str] = None


# ============================================================================
# AGENT HEALTH
# ============================================================================

@dataclass(frozen=True)
class HealthState:
    """Result of one health probe. Valid for a single dispatch batch only."""
    reachable: bool
    checked_at: datetime
    uptime: Optional[str] = None
    agent_address: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reachable": self.reachable,
            "checked_at": self.checked_at.isoformat(),
            "uptime": self.uptime,
            "agent_address": self.agent_address,
            "error": self.error,
        }


# ============================================================================
# FALLBACK ARTIFACTS
# ============================================================================

@dataclass(frozen=True)
class DeliveryArtifact:
    """A scannable QR code that lets a human finish delivery by hand."""
    address: str
    artifact_path: str  # public path, e.g. /whatsapp-qr/whatsapp-9198...png
    rendered_message: str
    created_at: datetime
    deep_link: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "artifact_path": self.artifact_path,
            "rendered_message": self.rendered_message,
            "created_at": self.created_at.isoformat(),
            "deep_link": self.deep_link,
        }


# ============================================================================
# OUTCOMES
# ============================================================================

class OutcomeStatus(str, Enum):
    DELIVERED = "delivered"
    QUEUED = "queued"
    SKIPPED = "skipped"
    FAILED = "failed"


class Channel(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DeliveryOutcome:
    """
    What happened to one recipient.

    ``QUEUED`` means a fallback artifact exists; it never means the user
    actually received the message.
    """
    recipient_id: str
    status: OutcomeStatus
    channel: Optional[Channel] = None
    artifact: Optional[DeliveryArtifact] = None
    reason: Optional[str] = None

    @classmethod
    def delivered(cls, recipient_id: str) -> "DeliveryOutcome":
        return cls(recipient_id, OutcomeStatus.DELIVERED, channel=Channel.PRIMARY)

    @classmethod
    def queued(cls, recipient_id: str, artifact: DeliveryArtifact) -> "DeliveryOutcome":
        return cls(
            recipient_id, OutcomeStatus.QUEUED,
            channel=Channel.FALLBACK, artifact=artifact,
        )

    @classmethod
    def skipped(cls, recipient_id: str, reason: str) -> "DeliveryOutcome":
        return cls(recipient_id, OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, recipient_id: str, reason: str) -> "DeliveryOutcome":
        return cls(recipient_id, OutcomeStatus.FAILED, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.status in (OutcomeStatus.DELIVERED, OutcomeStatus.QUEUED)

    @property
    def artifact_ref(self) -> Optional[str]:
        return self.artifact.artifact_path if self.artifact else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "status": self.status.value,
            "channel": self.channel.value if self.channel else None,
            "artifact_ref": self.artifact_ref,
            "reason": self.reason,
        }


# ============================================================================
# AGGREGATE RESULT
# ============================================================================

class DispatchStatus(str, Enum):
    DELIVERED = "delivered"  # every recipient reached through the agent
    VIA_FALLBACK = "via_fallback"  # everyone covered, some only by QR artifact
    PARTIAL = "partial"  # some recipients covered, others skipped/failed
    FAILED = "failed"  # nobody covered
    DISABLED = "disabled"  # master switch off, nothing attempted


@dataclass
class DispatchResult:
    """Aggregate of one dispatch batch. ``outcomes[i]`` belongs to ``recipients[i]``."""
    any_delivered: bool
    outcomes: list[DeliveryOutcome] = field(default_factory=list)
    artifacts: list[DeliveryArtifact] = field(default_factory=list)
    disabled: bool = False
    agent_reachable: Optional[bool] = None

    @classmethod
    def from_outcomes(
        cls,
        outcomes: list[DeliveryOutcome],
        *,
        agent_reachable: Optional[bool] = None,
    ) -> "DispatchResult":
        return cls(
            any_delivered=any(o.succeeded for o in outcomes),
            outcomes=outcomes,
            artifacts=[o.artifact for o in outcomes if o.artifact is not None],
            agent_reachable=agent_reachable,
        )

    @property
    def ok(self) -> bool:
        """True when callers have nothing to report as an error."""
        return self.disabled or self.any_delivered

    @property
    def status(self) -> DispatchStatus:
        if self.disabled:
            return DispatchStatus.DISABLED

        succeeded = [o for o in self.outcomes if o.succeeded]
        if not succeeded:
            return DispatchStatus.FAILED
        if len(succeeded) < len(self.outcomes):
            return DispatchStatus.PARTIAL
        if all(o.status == OutcomeStatus.DELIVERED for o in succeeded):
            return DispatchStatus.DELIVERED
        return DispatchStatus.VIA_FALLBACK

    def counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in OutcomeStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "any_delivered": self.any_delivered,
            "disabled": self.disabled,
            "agent_reachable": self.agent_reachable,
            "counts": self.counts(),
            "outcomes": [o.to_dict() for o in self.outcomes],
            "artifacts": [a.to_dict() for a in self.artifacts],
        }
