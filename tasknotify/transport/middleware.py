# tasknotify/transport/middleware.py
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tasknotify.infra.logging_config import LogContext, get_logger
from tasknotify.transport.security import SecurityHeaders

logger = get_logger(__name__)

# Polled by load balancers; logged at DEBUG only.
QUIET_PATHS = frozenset({"/health"})


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Honor an incoming X-Request-ID or mint one, and echo it back"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request, tagged with the request id"""

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled:
            return await call_next(request)

        log = LogContext(logger, request_id=_request_id(request))
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            log.error(
                "%s raised %s after %.1fms",
                route, type(exc).__name__, (time.perf_counter() - started) * 1000,
                exc_info=True,
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        log.logger.log(
            logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO,
            "%s -> %d (%.1fms)", route, response.status_code, elapsed_ms,
            extra={**log.context, "status_code": response.status_code, "duration_ms": elapsed_ms},
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn anything that escaped the routes into a JSON 500"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = _request_id(request)
            logger.error(
                "Unhandled %s: %s", type(exc).__name__, exc,
                extra={"request_id": request_id},
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id},
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        return SecurityHeaders.add_security_headers(await call_next(request))
