# tasknotify/infra/notification_service.py
"""
WhatsApp notifications for task-management events.

One helper per application event.  Each helper resolves user ids through
the configured ``UserDirectory``, builds the event and hands both to the
process-wide ``NotificationDispatcher``.

Configure via settings:
- NOTIFICATIONS_ENABLED: bool (master switch, off by default)
- AGENT_BASE_URL: WhatsApp delivery agent (``/health``, ``/api/send``)
- SENDER_ADDRESS: bot number, used as "from" and for ``bot_chat_link``
"""
from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from tasknotify.config import settings
from tasknotify.core.dispatch.addressing import normalize_address
from tasknotify.core.dispatch.dispatcher import DispatchPolicy, NotificationDispatcher
from tasknotify.core.dispatch.domain import DeliveryArtifact, DispatchResult, HealthState
from tasknotify.core.dispatch.errors import InvalidAddress
from tasknotify.core.dispatch.events import (
    AdminBroadcast,
    NewMessage,
    NewNotice,
    TaskAssigned,
    TaskCompleted,
    TaskReminder,
    TaskRevoked,
    TaskStatusChanged,
)
from tasknotify.core.dispatch.templates import MessageTemplater
from tasknotify.infra.agent_health import AgentHealthProbe
from tasknotify.infra.agent_sender import AgentSender
from tasknotify.infra.artifact_log import get_artifact_log
from tasknotify.infra.logging_config import get_logger
from tasknotify.infra.qr_fallback import QRCodeFallback, build_deep_link
from tasknotify.infra.user_directory import (
    ROLE_SUPER_ADMIN,
    InMemoryUserDirectory,
    UserDirectory,
    resolve_recipients,
)

logger = get_logger(__name__)

UNKNOWN_COMPLETER = "A user"
UNKNOWN_REVOKER = "An admin"

# Lazy singletons
_dispatcher: Optional[NotificationDispatcher] = None
_directory: Optional[UserDirectory] = None


def get_dispatcher() -> NotificationDispatcher:
    """Get or create the dispatcher wired from settings."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            probe=AgentHealthProbe(settings.agent_base_url),
            primary=AgentSender(settings.agent_base_url, sender_address=settings.sender_address),
            fallback=QRCodeFallback(settings.artifact_dir, settings.artifact_public_prefix),
            artifact_log=get_artifact_log(),
            templater=MessageTemplater(
                product_name=settings.product_name,
                system_name=settings.system_name,
                preview_length=settings.preview_length,
            ),
            policy=DispatchPolicy.from_settings(settings),
        )
        logger.info(
            f"Notification dispatcher ready: enabled={settings.notifications_enabled}, "
            f"agent={settings.agent_base_url}"
        )
    return _dispatcher


def set_dispatcher(dispatcher: Optional[NotificationDispatcher]) -> None:
    """Replace the process-wide dispatcher (None resets to the settings-based one)."""
    global _dispatcher
    _dispatcher = dispatcher


def get_user_directory() -> UserDirectory:
    global _directory
    if _directory is None:
        logger.warning("No user directory configured, using an empty in-memory one")
        _directory = InMemoryUserDirectory()
    return _directory


def set_user_directory(directory: Optional[UserDirectory]) -> None:
    global _directory
    _directory = directory


async def _user_name(user_id: Optional[str], default: str) -> str:
    if not user_id:
        return default
    try:
        user = await get_user_directory().find_by_id(user_id)
    except Exception as exc:
        logger.warning(f"Could not resolve user {user_id}: {type(exc).__name__}")
        return default
    return user.name if user and user.name else default


# =============================================================================
# Task notifications
# =============================================================================

async def notify_task_assignees(
    title: str,
    description: str,
    due_date: date,
    assigner_name: str,
    assignee_ids: Iterable[str],
) -> DispatchResult:
    recipients = await resolve_recipients(get_user_directory(), assignee_ids)
    event = TaskAssigned(
        title=title,
        description=description,
        due_date=due_date,
        assignee_name="",
        assigner_name=assigner_name,
    )
    return await get_dispatcher().dispatch(event, recipients)


async def notify_task_reminder(
    title: str,
    time_remaining: str,
    assignee_ids: Iterable[str],
) -> DispatchResult:
    recipients = await resolve_recipients(get_user_directory(), assignee_ids)
    event = TaskReminder(title=title, assignee_name="", time_remaining=time_remaining)
    return await get_dispatcher().dispatch(event, recipients)


async def notify_task_status_change(
    title: str,
    previous_status: str,
    new_status: str,
    notify_user_ids: Iterable[str],
) -> DispatchResult:
    recipients = await resolve_recipients(get_user_directory(), notify_user_ids)
    event = TaskStatusChanged(
        title=title,
        previous_status=previous_status,
        new_status=new_status,
        user_name="",
    )
    return await get_dispatcher().dispatch(event, recipients)


async def notify_task_completion(
    title: str,
    completed_by_id: Optional[str],
    completed_on: Optional[date],
    notify_user_ids: Iterable[str],
) -> DispatchResult:
    """``completed_by_id`` is a user id; an unknown id reads as "A user"."""
    completed_by = await _user_name(completed_by_id, UNKNOWN_COMPLETER)
    recipients = await resolve_recipients(get_user_directory(), notify_user_ids)
    event = TaskCompleted(
        title=title,
        completed_by=completed_by,
        completed_on=completed_on,
        user_name="",
    )
    return await get_dispatcher().dispatch(event, recipients)


async def notify_task_revocation(
    title: str,
    revoked_by_id: Optional[str],
    reason: str,
    notify_user_ids: Iterable[str],
) -> DispatchResult:
    revoked_by = await _user_name(revoked_by_id, UNKNOWN_REVOKER)
    recipients = await resolve_recipients(get_user_directory(), notify_user_ids)
    event = TaskRevoked(title=title, revoked_by=revoked_by, reason=reason, user_name="")
    return await get_dispatcher().dispatch(event, recipients)


# =============================================================================
# Messages, notices, admin broadcasts
# =============================================================================

async def notify_new_message(
    sender_name: str,
    recipient_id: str,
    subject: str,
    body: str,
    task_title: Optional[str] = None,
) -> DispatchResult:
    recipients = await resolve_recipients(get_user_directory(), [recipient_id])
    event = NewMessage(
        sender_name=sender_name,
        subject=subject,
        body=body,
        recipient_name="",
        task_title=task_title,
    )
    return await get_dispatcher().dispatch(event, recipients)


async def notify_new_notice(
    title: str,
    content: str,
    poster_name: str,
    important: bool = False,
    target_user_ids: Optional[Iterable[str]] = None,
) -> DispatchResult:
    """
    Notify about a new notice.

    Explicit ``target_user_ids`` win; otherwise every active user with a
    phone number is notified.
    """
    directory = get_user_directory()
    target_user_ids = list(target_user_ids or [])

    if target_user_ids:
        recipients = await resolve_recipients(directory, target_user_ids)
    else:
        users = await directory.find_active()
        recipients = [u.to_recipient() for u in users if u.phone]

    if not recipients:
        logger.info(f"No users to notify for notice: {title}")

    event = NewNotice(title=title, content=content, poster_name=poster_name, important=important)
    return await get_dispatcher().dispatch(event, recipients)


async def notify_admins(message: str, urgent: bool = False) -> DispatchResult:
    admins = await get_user_directory().find_by_role(ROLE_SUPER_ADMIN)
    if not admins:
        logger.warning("No admin users found for notification")
    recipients = [u.to_recipient() for u in admins]
    return await get_dispatcher().dispatch(AdminBroadcast(message=message, urgent=urgent), recipients)


# =============================================================================
# Operator helpers
# =============================================================================

async def agent_status() -> HealthState:
    """Current agent health, for operator display."""
    probe = AgentHealthProbe(settings.agent_base_url)
    return await probe.check(settings.health_timeout_seconds)


def bot_chat_link(message: str) -> str:
    """
    ``wa.me`` link that opens a chat with the bot, message pre-filled.

    Raises:
        InvalidAddress: no sender (bot) number configured.
    """
    if not settings.sender_address:
        raise InvalidAddress("sender address not configured")
    address = normalize_address(
        settings.sender_address,
        default_prefix=settings.default_routing_prefix,
        local_length=settings.local_number_length,
    )
    return build_deep_link(address, message)


def recent_artifacts(limit: int = 10) -> list[DeliveryArtifact]:
    return get_artifact_log().recent(limit)
