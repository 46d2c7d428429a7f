# tasknotify/core/dispatch/events.py
"""
Notification events.

Each variant is a frozen dataclass carrying only what its template needs.
``NotificationEvent`` is the union of all variants; ``kind`` is a stable
tag used for logging, metrics and the HTTP trigger payload.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import ClassVar, Optional, Union


@dataclass(frozen=True)
class TaskAssigned:
    kind: ClassVar[str] = "task_assigned"

    title: str
    description: str
    due_date: date
    assignee_name: str
    assigner_name: str


@dataclass(frozen=True)
class TaskReminder:
    kind: ClassVar[str] = "task_reminder"

    title: str
    assignee_name: str
    time_remaining: str  # e.g. "2 hours", already humanized by the caller


@dataclass(frozen=True)
class TaskStatusChanged:
    kind: ClassVar[str] = "task_status_changed"

    title: str
    previous_status: str
    new_status: str
    user_name: str


@dataclass(frozen=True)
class TaskCompleted:
    kind: ClassVar[str] = "task_completed"

    title: str
    completed_by: str
    completed_on: Optional[date]
    user_name: str


@dataclass(frozen=True)
class TaskRevoked:
    kind: ClassVar[str] = "task_revoked"

    title: str
    revoked_by: str
    reason: str
    user_name: str


@dataclass(frozen=True)
class NewMessage:
    kind: ClassVar[str] = "new_message"

    sender_name: str
    subject: str
    body: str
    recipient_name: str
    task_title: Optional[str] = None


@dataclass(frozen=True)
class NewNotice:
    kind: ClassVar[str] = "new_notice"

    title: str
    content: str
    poster_name: str
    important: bool = False


@dataclass(frozen=True)
class AdminBroadcast:
    kind: ClassVar[str] = "admin_broadcast"

    message: str
    urgent: bool = False


NotificationEvent = Union[
    TaskAssigned,
    TaskReminder,
    TaskStatusChanged,
    TaskCompleted,
    TaskRevoked,
    NewMessage,
    NewNotice,
    AdminBroadcast,
]

EVENT_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (
        TaskAssigned,
        TaskReminder,
        TaskStatusChanged,
        TaskCompleted,
        TaskRevoked,
        NewMessage,
        NewNotice,
        AdminBroadcast,
    )
}
