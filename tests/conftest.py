# tests/conftest.py
"""Pytest configuration and fixtures"""
import asyncio
from datetime import date, datetime, timezone

import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tasknotify.core.dispatch.domain import DeliveryArtifact, HealthState, Recipient  # noqa: E402
from tasknotify.core.dispatch.errors import PrimaryDeliveryFailed  # noqa: E402
from tasknotify.core.dispatch.events import TaskAssigned  # noqa: E402
from tasknotify.infra.metrics import get_metrics_collector  # noqa: E402

FIXED_NOW = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fake collaborators for the dispatcher
# ---------------------------------------------------------------------------

class FakeProbe:
    def __init__(self, reachable: bool = True, delay: float = 0.0):
        self.reachable = reachable
        self.delay = delay
        self.calls = 0

    async def check(self, timeout: float) -> HealthState:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return HealthState(
            reachable=self.reachable,
            checked_at=FIXED_NOW,
            error=None if self.reachable else "agent not connected",
        )


class FakePrimary:
    """Records sends; ``fail_for`` addresses raise, ``stall_for`` never return."""

    def __init__(self, fail_for=(), stall_for=(), delay: float = 0.0):
        self.fail_for = set(fail_for)
        self.stall_for = set(stall_for)
        self.delay = delay
        self.sent: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, address: str, message: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if address in self.stall_for:
                await asyncio.sleep(3600)
            if self.delay:
                await asyncio.sleep(self.delay)
            if address in self.fail_for:
                raise PrimaryDeliveryFailed("agent did not confirm delivery", status=200)
            self.sent.append((address, message))
        finally:
            self.in_flight -= 1


class FakeFallback:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.produced: list[tuple[str, str]] = []

    async def produce(self, address: str, message: str) -> DeliveryArtifact:
        if address in self.fail_for:
            from tasknotify.core.dispatch.errors import ArtifactPersistenceFailed
            raise ArtifactPersistenceFailed("disk full")
        self.produced.append((address, message))
        return DeliveryArtifact(
            address=address,
            artifact_path=f"/whatsapp-qr/whatsapp-{address}-test.png",
            rendered_message=message,
            created_at=FIXED_NOW,
            deep_link=f"https://wa.me/{address}?text=x",
        )


class ListSink:
    def __init__(self):
        self.items: list[DeliveryArtifact] = []

    def append(self, artifact: DeliveryArtifact) -> None:
        self.items.append(artifact)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics_collector().reset()
    yield


@pytest.fixture
def task_event():
    return TaskAssigned(
        title="Calibrate hearing aids",
        description="Bring the audiometer",
        due_date=date(2026, 10, 20),
        assignee_name="Priya",
        assigner_name="Dr. Rao",
    )


@pytest.fixture
def recipients():
    return [
        Recipient(id="u1", display_name="Asha", address="9876543210"),
        Recipient(id="u2", display_name="Ravi", address="+91 91234 56789"),
    ]
