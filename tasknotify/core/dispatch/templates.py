# tasknotify/core/dispatch/templates.py
"""
WhatsApp message templates, one renderer per event kind.

Renderers are pure: no clock, no I/O.  Dates come from the event itself.
Formatting uses WhatsApp markup (``*bold*``).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

from tasknotify.core.dispatch.events import (
    AdminBroadcast,
    NewMessage,
    NewNotice,
    NotificationEvent,
    TaskAssigned,
    TaskCompleted,
    TaskReminder,
    TaskRevoked,
    TaskStatusChanged,
)

DEFAULT_PREVIEW_LENGTH = 150
IMPORTANT_MARKER = "*IMPORTANT*"
ELLIPSIS = "..."
FALLBACK_NAME = "Team Member"
DATE_FORMAT = "%d/%m/%Y"


@dataclass(frozen=True)
class _Context:
    product_name: str
    system_name: str
    recipient_name: str
    preview_length: int


def truncate_preview(text: str, limit: int = DEFAULT_PREVIEW_LENGTH) -> str:
    """Cut free text to ``limit`` characters, marking the cut with ``...``."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + ELLIPSIS


def _format_date(value: date | None, default: str = "today") -> str:
    if value is None:
        return default
    return value.strftime(DATE_FORMAT)


def _compose(
    header: str,
    ctx: _Context,
    body: list[str],
    *,
    call_to_action: str | None = None,
    important: bool = False,
) -> str:
    """Assemble header, greeting, body blocks and closing line."""
    lines: list[str] = []
    if important:
        lines.append(IMPORTANT_MARKER)
    lines.append(f"*{header} - {ctx.product_name}*")
    lines.append("")
    lines.append(f"Hello {ctx.recipient_name},")
    for block in body:
        lines.append("")
        lines.append(block)
    lines.append("")
    lines.append(
        call_to_action
        or f"Please check the {ctx.system_name} for more details."
    )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------

def _render_task_assigned(event: TaskAssigned, ctx: _Context) -> str:
    body = [f"You have been assigned a new task by {event.assigner_name}:"]
    body.append(f"*{event.title}*")
    if event.description:
        body.append(event.description.strip())
    body.append(f"Due: {_format_date(event.due_date, default='not set')}")
    return _compose("New Task Assigned", ctx, body)


def _render_task_reminder(event: TaskReminder, ctx: _Context) -> str:
    body = [
        f"Your task *{event.title}* is due in {event.time_remaining}.",
        "Please complete it as soon as possible.",
    ]
    return _compose("Task Reminder", ctx, body)


def _render_task_status_changed(event: TaskStatusChanged, ctx: _Context) -> str:
    body = [
        f'The status of task "{event.title}" has changed from '
        f"*{event.previous_status}* to *{event.new_status}*.",
    ]
    return _compose("Task Status Update", ctx, body)


def _render_task_completed(event: TaskCompleted, ctx: _Context) -> str:
    body = [
        f'The task "{event.title}" has been marked as complete by '
        f"{event.completed_by} on {_format_date(event.completed_on)}.",
    ]
    return _compose("Task Completed", ctx, body)


def _render_task_revoked(event: TaskRevoked, ctx: _Context) -> str:
    body = [
        f'The completion status of task "{event.title}" has been revoked '
        f"by {event.revoked_by}.",
    ]
    if event.reason:
        body.append(f"Reason: {event.reason}")
    return _compose("Task Completion Revoked", ctx, body)


def _render_new_message(event: NewMessage, ctx: _Context) -> str:
    body = [
        f"You have received a new message from {event.sender_name}:",
        f"*Subject:* {event.subject}",
        f"*Message:* {truncate_preview(event.body, ctx.preview_length)}",
    ]
    if event.task_title:
        body.append(f"*Related Task:* {event.task_title}")
    return _compose(
        "New Message", ctx, body,
        call_to_action=f"Please check the {ctx.system_name} to read the full message.",
    )


def _render_new_notice(event: NewNotice, ctx: _Context) -> str:
    body = [
        f"A new notice has been posted by {event.poster_name}:",
        f"*{event.title}*",
        truncate_preview(event.content, ctx.preview_length),
    ]
    return _compose(
        "New Notice", ctx, body,
        call_to_action=f"Please check the {ctx.system_name} for the complete notice.",
        important=event.important,
    )


def _render_admin_broadcast(event: AdminBroadcast, ctx: _Context) -> str:
    return _compose(
        "Admin Notification", ctx, [event.message.strip()],
        important=event.urgent,
    )


_RENDERERS: dict[type, Callable[..., str]] = {
    TaskAssigned: _render_task_assigned,
    TaskReminder: _render_task_reminder,
    TaskStatusChanged: _render_task_status_changed,
    TaskCompleted: _render_task_completed,
    TaskRevoked: _render_task_revoked,
    NewMessage: _render_new_message,
    NewNotice: _render_new_notice,
    AdminBroadcast: _render_admin_broadcast,
}


def _event_recipient_name(event: NotificationEvent) -> str | None:
    """Name the event itself carries for its addressee, if any."""
    for attr in ("assignee_name", "user_name", "recipient_name"):
        value = getattr(event, attr, None)
        if value:
            return value
    return None


class MessageTemplater:
    """Render a NotificationEvent into WhatsApp text."""

    def __init__(
        self,
        product_name: str = "Hearing Hope",
        system_name: str = "Task Management System",
        preview_length: int = DEFAULT_PREVIEW_LENGTH,
    ):
        self.product_name = product_name
        self.system_name = system_name
        self.preview_length = preview_length

    def render(self, event: NotificationEvent, *, recipient_name: str | None = None) -> str:
        """
        Render ``event`` for one recipient.

        ``recipient_name`` wins over the name stored in the event, so one
        event can be fanned out to several users with a personal greeting.

        Raises:
            TypeError: unknown event type.
        """
        renderer = _RENDERERS.get(type(event))
        if renderer is None:
            raise TypeError(f"No template for event type {type(event).__name__}")

        ctx = _Context(
            product_name=self.product_name,
            system_name=self.system_name,
            recipient_name=recipient_name or _event_recipient_name(event) or FALLBACK_NAME,
            preview_length=self.preview_length,
        )
        return renderer(event, ctx)

    @staticmethod
    def supported_kinds() -> list[str]:
        return sorted(cls.kind for cls in _RENDERERS)
