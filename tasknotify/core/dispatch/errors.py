# tasknotify/core/dispatch/errors.py
"""
Typed errors for the notification dispatcher.

Each error carries a short ``reason`` string.  The dispatcher catches
``DispatchError`` subtypes and turns them into ``DeliveryOutcome`` values;
none of them escape ``NotificationDispatcher.dispatch``.
"""
from __future__ import annotations


class DispatchError(Exception):
    """Base class for all dispatcher errors."""

    reason: str = "dispatch error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.reason
        super().__init__(self.detail)


class InvalidAddress(DispatchError):
    """Raw contact address cannot be turned into a routable one."""

    reason = "invalid address"


class AgentUnreachable(DispatchError):
    """Health probe reported the delivery agent as down."""

    reason = "agent unreachable"


class PrimaryDeliveryFailed(DispatchError):
    """Delivery agent rejected the message, timed out, or answered ambiguously.

    Attributes:
        status: HTTP status code (0 for connection-level errors).
    """

    reason = "primary delivery failed"

    def __init__(self, detail: str | None = None, *, status: int = 0):
        self.status = status
        super().__init__(detail)


class ArtifactPersistenceFailed(DispatchError):
    """Fallback artifact could not be produced or written."""

    reason = "artifact persistence failed"


class SubsystemDisabled(DispatchError):
    """Notifications are switched off globally."""

    reason = "notifications disabled"
