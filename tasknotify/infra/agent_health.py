# tasknotify/infra/agent_health.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

import aiohttp
from pydantic import ValidationError

from tasknotify.core.dispatch.domain import HealthState
from tasknotify.infra.agent_schemas import HealthResponse
from tasknotify.infra.http_client import get_agent_session
from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

HEALTH_PATH = "/health"


class AgentHealthProbe:
    """
    Ask the delivery agent whether it holds a live WhatsApp session.

    ``check`` never raises.  Anything other than a 200 response carrying
    ``{"connected": true}`` is reported as unreachable.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session_factory: Callable[[], aiohttp.ClientSession] = get_agent_session,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.url = base_url.rstrip("/") + HEALTH_PATH
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def check(self, timeout: float) -> HealthState:
        try:
            session = self._session_factory()
            async with session.get(
                self.url,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                if resp.status != 200:
                    logger.warning(f"Agent health check returned HTTP {resp.status}")
                    return self._down(f"HTTP {resp.status}")

                try:
                    payload = await resp.json(content_type=None)
                except Exception:
                    logger.warning("Agent health check returned non-JSON body")
                    return self._down("invalid response body")

        except Exception as exc:
            logger.warning(f"Agent health check failed: {type(exc).__name__}")
            return self._down(type(exc).__name__)

        if not isinstance(payload, dict):
            return self._down("invalid response body")

        try:
            health = HealthResponse.model_validate(payload)
        except ValidationError:
            # a non-boolean "connected" lands here
            return self._down("invalid response body")

        if not health.connected:
            return self._down("agent not connected", uptime=health.uptime)

        return HealthState(
            reachable=True,
            checked_at=self._clock(),
            uptime=_uptime_str(health.uptime),
            agent_address=health.agent_address,
        )

    def _down(self, error: str, uptime=None) -> HealthState:
        return HealthState(
            reachable=False,
            checked_at=self._clock(),
            uptime=_uptime_str(uptime),
            error=error,
        )


def _uptime_str(value) -> Optional[str]:
    if value is None:
        return None
    return str(value)
