# tasknotify/infra/agent_sender.py
"""
Primary channel: POST a rendered message to the delivery agent.

Fail-closed.  A send only counts when the agent answers 200 with a body
whose ``success`` is the JSON literal ``true``.  Everything else raises
``PrimaryDeliveryFailed`` so the dispatcher can fall back to a QR code.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

import aiohttp
from pydantic import ValidationError

from tasknotify.core.dispatch.addressing import mask_address
from tasknotify.core.dispatch.errors import PrimaryDeliveryFailed
from tasknotify.infra.agent_schemas import SendRequest, SendResponse
from tasknotify.infra.http_client import get_agent_session
from tasknotify.infra.logging_config import get_logger
from tasknotify.infra.metrics import inc_counter

logger = get_logger(__name__)

SEND_PATH = "/api/send"


class AgentSender:
    def __init__(
        self,
        base_url: str,
        *,
        sender_address: Optional[str] = None,
        session_factory: Callable[[], aiohttp.ClientSession] = get_agent_session,
    ):
        self.url = base_url.rstrip("/") + SEND_PATH
        self.sender_address = sender_address
        self._session_factory = session_factory

    def build_payload(self, address: str, message: str) -> dict:
        request = SendRequest(to=address, message=message, sender=self.sender_address)
        return request.model_dump(by_alias=True, exclude_none=True)

    async def send(self, address: str, message: str) -> None:
        """
        Deliver ``message`` to ``address`` (already normalized).

        Raises:
            PrimaryDeliveryFailed: on any outcome other than explicit success.
        """
        payload = self.build_payload(address, message)

        try:
            session = self._session_factory()
            async with session.post(self.url, json=payload) as resp:
                body = await _safe_response_json(resp)
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            inc_counter("agent_send_error", reason="transport")
            raise PrimaryDeliveryFailed(f"transport error: {type(exc).__name__}") from exc

        if status != 200:
            inc_counter("agent_send_error", reason="http")
            logger.warning(f"Agent send rejected: to={mask_address(address)}, status={status}")
            raise PrimaryDeliveryFailed(f"agent returned HTTP {status}", status=status)

        if not isinstance(body, dict):
            inc_counter("agent_send_error", reason="body")
            raise PrimaryDeliveryFailed("agent returned a non-JSON body", status=status)

        try:
            response = SendResponse.model_validate(body)
        except ValidationError:
            inc_counter("agent_send_error", reason="body")
            raise PrimaryDeliveryFailed("agent response did not confirm delivery", status=status)

        if not response.success:
            inc_counter("agent_send_error", reason="unconfirmed")
            detail = response.error or "agent did not confirm delivery"
            raise PrimaryDeliveryFailed(detail, status=status)

        inc_counter("agent_send_ok")
        logger.info(f"Agent message sent: to={mask_address(address)}")


async def _safe_response_json(resp: aiohttp.ClientResponse):
    """Parse JSON from response, returning None if body is not valid JSON."""
    try:
        return await resp.json(content_type=None)
    except Exception:
        logger.warning(f"Agent returned non-JSON body: status={resp.status}")
        return None
