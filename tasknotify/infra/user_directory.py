# tasknotify/infra/user_directory.py
"""
User lookup for notification targeting.

The user store itself lives outside this service; ``UserDirectory`` is the
narrow read interface the notify helpers need.  ``InMemoryUserDirectory``
backs tests and single-process deployments that load users at startup.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from tasknotify.core.dispatch.domain import Recipient
from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_MANAGER = "MANAGER"
ROLE_EMPLOYEE = "EMPLOYEE"


@dataclass(frozen=True)
class UserRecord:
    id: str
    name: str
    phone: Optional[str] = None
    role: str = ROLE_EMPLOYEE
    is_active: bool = True

    def to_recipient(self) -> Recipient:
        return Recipient(id=self.id, display_name=self.name, address=self.phone)


class UserDirectory(Protocol):
    async def find_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def find_by_role(self, role: str) -> list[UserRecord]: ...

    async def find_active(self) -> list[UserRecord]: ...


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[UserRecord] = ()):
        self._users: dict[str, UserRecord] = {u.id: u for u in users}

    def add(self, user: UserRecord) -> None:
        self._users[user.id] = user

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)

    async def find_by_role(self, role: str) -> list[UserRecord]:
        return [u for u in self._users.values() if u.role == role and u.is_active]

    async def find_active(self) -> list[UserRecord]:
        return [u for u in self._users.values() if u.is_active]


async def resolve_recipients(directory: UserDirectory, user_ids: Iterable[str]) -> list[Recipient]:
    """
    Map user ids to recipients, preserving order.

    A missing record, or a lookup that raises, yields a recipient without an
    address; the dispatcher reports it as skipped instead of dropping it.
    """
    recipients: list[Recipient] = []
    for user_id in user_ids:
        try:
            user = await directory.find_by_id(user_id)
        except Exception as exc:
            logger.warning(f"User lookup failed for {user_id}: {type(exc).__name__}")
            user = None

        if user is None:
            recipients.append(Recipient(id=user_id))
        else:
            recipients.append(user.to_recipient())
    return recipients
