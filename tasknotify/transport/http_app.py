# tasknotify/transport/http_app.py
"""
Operator HTTP surface for the notifier.

Security layers:
1. Public: liveness (``/health``) and the QR artifact static mount
2. Protected: everything under ``/notifications`` and ``/metrics``
   (require admin token)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tasknotify.config import settings
from tasknotify.core.dispatch.dispatcher import NotificationDispatcher
from tasknotify.infra.http_client import close_all_sessions
from tasknotify.infra.logging_config import get_logger, setup_logging
from tasknotify.infra.metrics import get_metrics_collector
from tasknotify.infra.notification_service import agent_status, get_dispatcher, recent_artifacts
from tasknotify.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from tasknotify.transport.schemas import DispatchIn, parse_event
from tasknotify.transport.security import (
    check_configured_tokens,
    require_admin_auth,
    sanitize_error_message,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""
    logger.info(
        f"Starting notifier: env={settings.app_env}, "
        f"notifications_enabled={settings.notifications_enabled}"
    )

    if settings.is_production:
        missing = settings.validate_required_for_production()
        if missing:
            logger.critical(f"Missing required production settings: {missing}")
            raise RuntimeError(f"Missing production config: {missing}")

    check_configured_tokens()

    yield

    logger.info("Shutting down notifier")
    await close_all_sessions()


def create_app() -> FastAPI:
    setup_logging(level=settings.log_level, use_json=settings.is_production)

    app = FastAPI(
        title="Task Notifier",
        description="WhatsApp task notifications with QR fallback",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": sanitize_error_message(exc, settings.is_production)},
        )

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "notifications_enabled": settings.notifications_enabled,
        }

    # ------------------------------------------------------------------
    # Operator endpoints
    # ------------------------------------------------------------------

    @app.get("/notifications/agent", dependencies=[Depends(require_admin_auth)])
    async def notifications_agent():
        state = await agent_status()
        return state.to_dict()

    @app.get("/notifications/artifacts", dependencies=[Depends(require_admin_auth)])
    def notifications_artifacts(limit: int = Query(default=10, ge=1, le=200)):
        artifacts = recent_artifacts(limit)
        return {
            "count": len(artifacts),
            "artifacts": [a.to_dict() for a in artifacts],
        }

    @app.post("/notifications/dispatch", dependencies=[Depends(require_admin_auth)])
    async def notifications_dispatch(
        payload: DispatchIn,
        dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    ):
        try:
            event = parse_event(payload.event)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

        recipients = [r.to_domain() for r in payload.recipients]
        result = await dispatcher.dispatch(event, recipients, deadline=payload.deadline_seconds)
        return result.to_dict()

    @app.get("/metrics", dependencies=[Depends(require_admin_auth)])
    def metrics():
        return get_metrics_collector().get_metrics()

    artifact_dir = Path(settings.artifact_dir)
    artifact_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.artifact_public_prefix,
        StaticFiles(directory=artifact_dir),
        name="artifacts",
    )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tasknotify.transport.http_app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8100,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,
        server_header=False,
        date_header=False,
    )
