# tasknotify/transport/schemas.py
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from tasknotify.core.dispatch.domain import Recipient
from tasknotify.core.dispatch.events import EVENT_TYPES, NotificationEvent


class RecipientIn(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    display_name: str | None = Field(default=None, max_length=200)
    address: str | None = Field(default=None, max_length=64)

    def to_domain(self) -> Recipient:
        return Recipient(id=self.id, display_name=self.display_name, address=self.address)


class DispatchIn(BaseModel):
    event: dict[str, Any]
    recipients: list[RecipientIn] = Field(default_factory=list, max_length=1000)
    deadline_seconds: float | None = Field(default=None, gt=0, le=300)


def parse_event(payload: dict[str, Any]) -> NotificationEvent:
    """
    Build an event from ``{"kind": ..., **fields}``.

    Raises:
        ValueError: unknown kind or fields that don't fit the event.
    """
    data = dict(payload)
    kind = data.pop("kind", None)
    event_cls = EVENT_TYPES.get(kind)
    if event_cls is None:
        raise ValueError(f"Unknown event kind: {kind!r}")

    try:
        return TypeAdapter(event_cls).validate_python(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ValueError(f"Invalid {kind} event: {fields}") from exc
