# tasknotify/infra/http_client.py
"""
Shared aiohttp session for talking to the delivery agent.

The health probe and the sender both borrow the same lazily created
``ClientSession`` so connections to the agent are pooled.  Per-call
deadlines are passed as ``ClientTimeout`` on each request; the session
timeout below is only an upper bound.

Call ``close_all_sessions()`` once during shutdown.
"""
from __future__ import annotations

import aiohttp

from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

AGENT_SESSION_TIMEOUT = aiohttp.ClientTimeout(total=15, connect=3)
AGENT_POOL_LIMIT = 10

_sessions: dict[str, aiohttp.ClientSession] = {}


def get_agent_session() -> aiohttp.ClientSession:
    """Session for the WhatsApp delivery agent (health probe + send)."""
    session = _sessions.get("agent")
    if session is not None and not session.closed:
        return session

    session = aiohttp.ClientSession(
        timeout=AGENT_SESSION_TIMEOUT,
        connector=aiohttp.TCPConnector(limit=AGENT_POOL_LIMIT, keepalive_timeout=30),
        headers={"Accept": "application/json"},
    )
    _sessions["agent"] = session
    logger.debug("Agent HTTP session opened (pool limit=%d)", AGENT_POOL_LIMIT)
    return session


async def close_all_sessions() -> None:
    while _sessions:
        name, session = _sessions.popitem()
        if not session.closed:
            await session.close()
            logger.debug("HTTP session '%s' closed", name)
