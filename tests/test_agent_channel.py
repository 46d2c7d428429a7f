# tests/test_agent_channel.py
"""
Tests for the delivery agent health probe and sender.

All tests mock the HTTP layer; no real agent calls are made.
"""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from tasknotify.core.dispatch.errors import PrimaryDeliveryFailed
from tasknotify.infra.agent_health import AgentHealthProbe
from tasknotify.infra.agent_sender import AgentSender

_NO_JSON = object()


def _make_mock_response(status=200, json_data=_NO_JSON):
    """Create a mock aiohttp response."""
    resp = AsyncMock()
    resp.status = status
    if json_data is _NO_JSON:
        resp.json = AsyncMock(side_effect=ValueError("not json"))
    else:
        resp.json = AsyncMock(return_value=json_data)
    return resp


def _make_mock_session(response=None, *, method="get", raises=None):
    """Create a mock session whose .get()/.post() returns the given response."""
    ctx = AsyncMock()
    if raises is not None:
        ctx.__aenter__ = AsyncMock(side_effect=raises)
    else:
        ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    setattr(session, method, MagicMock(return_value=ctx))
    return session


# ============================================================================
# AgentHealthProbe
# ============================================================================

class TestAgentHealthProbe:
    @pytest.mark.asyncio
    async def test_connected_agent_is_reachable(self):
        resp = _make_mock_response(200, {"connected": True, "uptime": 321.5, "botNumber": "919000000000"})
        session = _make_mock_session(resp)
        probe = AgentHealthProbe("http://agent:3100/", session_factory=lambda: session)

        state = await probe.check(timeout=1.0)

        assert state.reachable is True
        assert state.uptime == "321.5"
        assert state.agent_address == "919000000000"
        assert session.get.call_args[0][0] == "http://agent:3100/health"

    @pytest.mark.asyncio
    async def test_agent_address_alias(self):
        resp = _make_mock_response(200, {"connected": True, "agentAddress": "14155550100"})
        probe = AgentHealthProbe("http://agent", session_factory=lambda: _make_mock_session(resp))

        state = await probe.check(timeout=1.0)
        assert state.agent_address == "14155550100"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"connected": False},
        {},
        {"connected": "true"},
        {"connected": 1},
        ["connected"],
    ])
    async def test_anything_but_literal_true_is_unreachable(self, body):
        resp = _make_mock_response(200, body)
        probe = AgentHealthProbe("http://agent", session_factory=lambda: _make_mock_session(resp))

        state = await probe.check(timeout=1.0)
        assert state.reachable is False

    @pytest.mark.asyncio
    async def test_http_error_is_unreachable(self):
        resp = _make_mock_response(503, {"connected": True})
        probe = AgentHealthProbe("http://agent", session_factory=lambda: _make_mock_session(resp))

        state = await probe.check(timeout=1.0)
        assert state.reachable is False
        assert state.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_non_json_body_is_unreachable(self):
        resp = _make_mock_response(200)
        probe = AgentHealthProbe("http://agent", session_factory=lambda: _make_mock_session(resp))

        state = await probe.check(timeout=1.0)
        assert state.reachable is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [
        aiohttp.ClientConnectionError("refused"),
        asyncio.TimeoutError(),
    ])
    async def test_transport_errors_never_raise(self, exc):
        session = _make_mock_session(raises=exc)
        probe = AgentHealthProbe("http://agent", session_factory=lambda: session)

        state = await probe.check(timeout=1.0)
        assert state.reachable is False
        assert state.error == type(exc).__name__


# ============================================================================
# AgentSender
# ============================================================================

class TestAgentSender:
    @pytest.mark.asyncio
    async def test_explicit_success(self):
        resp = _make_mock_response(200, {"success": True})
        session = _make_mock_session(resp, method="post")
        sender = AgentSender("http://agent:3100", session_factory=lambda: session)

        await sender.send("919876543210", "Hello")

        url = session.post.call_args[0][0]
        payload = session.post.call_args[1]["json"]
        assert url == "http://agent:3100/api/send"
        assert payload == {"to": "919876543210", "message": "Hello"}

    @pytest.mark.asyncio
    async def test_sender_address_sent_as_from(self):
        resp = _make_mock_response(200, {"success": True})
        session = _make_mock_session(resp, method="post")
        sender = AgentSender("http://agent", sender_address="919000000000", session_factory=lambda: session)

        await sender.send("919876543210", "Hello")

        assert session.post.call_args[1]["json"]["from"] == "919000000000"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"success": False},
        {},
        {"success": "true"},
        {"success": 1},
        {"status": "sent"},
        "ok",
        None,
    ])
    async def test_fail_closed_on_anything_but_literal_true(self, body):
        resp = _make_mock_response(200, body)
        sender = AgentSender(
            "http://agent", session_factory=lambda: _make_mock_session(resp, method="post"),
        )

        with pytest.raises(PrimaryDeliveryFailed):
            await sender.send("919876543210", "Hello")

    @pytest.mark.asyncio
    async def test_malformed_body_fails(self):
        resp = _make_mock_response(200)
        sender = AgentSender(
            "http://agent", session_factory=lambda: _make_mock_session(resp, method="post"),
        )

        with pytest.raises(PrimaryDeliveryFailed):
            await sender.send("919876543210", "Hello")

    @pytest.mark.asyncio
    async def test_http_error_carries_status(self):
        resp = _make_mock_response(500, {"success": True})
        sender = AgentSender(
            "http://agent", session_factory=lambda: _make_mock_session(resp, method="post"),
        )

        with pytest.raises(PrimaryDeliveryFailed) as exc_info:
            await sender.send("919876543210", "Hello")
        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_agent_error_message_is_kept(self):
        resp = _make_mock_response(200, {"success": False, "error": "WhatsApp client not ready"})
        sender = AgentSender(
            "http://agent", session_factory=lambda: _make_mock_session(resp, method="post"),
        )

        with pytest.raises(PrimaryDeliveryFailed) as exc_info:
            await sender.send("919876543210", "Hello")
        assert exc_info.value.detail == "WhatsApp client not ready"

    @pytest.mark.asyncio
    async def test_connection_error_becomes_delivery_failure(self):
        session = _make_mock_session(method="post", raises=aiohttp.ClientConnectionError("refused"))
        sender = AgentSender("http://agent", session_factory=lambda: session)

        with pytest.raises(PrimaryDeliveryFailed) as exc_info:
            await sender.send("919876543210", "Hello")
        assert exc_info.value.status == 0

    @pytest.mark.asyncio
    async def test_session_timeout_becomes_delivery_failure(self):
        session = _make_mock_session(method="post", raises=asyncio.TimeoutError())
        sender = AgentSender("http://agent", session_factory=lambda: session)

        with pytest.raises(PrimaryDeliveryFailed) as exc_info:
            await sender.send("919876543210", "Hello")
        assert exc_info.value.status == 0
        assert "TimeoutError" in exc_info.value.detail
