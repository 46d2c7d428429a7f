# tasknotify/core/dispatch/ports.py
from __future__ import annotations
from typing import Protocol

from tasknotify.core.dispatch.domain import DeliveryArtifact, HealthState


class HealthProbe(Protocol):
    async def check(self, timeout: float) -> HealthState:
        """Never raises: any failure is reported as ``reachable=False``."""
        ...


class PrimaryChannel(Protocol):
    async def send(self, address: str, message: str) -> None:
        """Raises PrimaryDeliveryFailed unless the agent explicitly confirms."""
        ...


class FallbackChannel(Protocol):
    async def produce(self, address: str, message: str) -> DeliveryArtifact:
        """Raises ArtifactPersistenceFailed when no artifact could be written."""
        ...


class ArtifactSink(Protocol):
    def append(self, artifact: DeliveryArtifact) -> None: ...
