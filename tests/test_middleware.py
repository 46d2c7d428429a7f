# tests/test_middleware.py
"""Tests for tasknotify/transport/middleware.py and the security helpers."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from tasknotify.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from tasknotify.transport.security import sanitize_error_message, validate_token_strength


def _build_app(fail: bool = False):
    """Build a minimal FastAPI app with middleware for testing."""
    app = FastAPI()
    # Added last runs first: RequestID sees the request before the others.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware, enabled=True)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/test")
    def test_endpoint():
        if fail:
            raise RuntimeError("boom")
        return {"ok": True}

    return app


class TestRequestIDMiddleware:
    def test_generates_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test")
        assert resp.status_code == 200
        assert len(resp.headers["X-Request-ID"]) >= 32

    def test_preserves_existing_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test", headers={"X-Request-ID": "my-custom-request-id-123"})
        assert resp.headers["X-Request-ID"] == "my-custom-request-id-123"


class TestErrorHandlingMiddleware:
    def test_normal_request_passes_through(self):
        client = TestClient(_build_app(), raise_server_exceptions=False)
        resp = client.get("/test")
        assert resp.json() == {"ok": True}

    def test_generic_error_returns_500(self):
        client = TestClient(_build_app(fail=True), raise_server_exceptions=False)
        resp = client.get("/test", headers={"X-Request-ID": "rid-1"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error", "request_id": "rid-1"}


class TestSecurityHeaders:
    def test_headers_added(self):
        resp = TestClient(_build_app()).get("/test")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "no-store" in resp.headers["Cache-Control"]


class TestSecurityHelpers:
    def test_weak_token_warnings(self):
        assert validate_token_strength("admin123", "ADMIN_TOKEN")
        assert validate_token_strength("k3J9vQ2xLw8Rz5Tn1Yb7Hc4Mf6Pd0Gs2Ue") == []

    def test_error_messages_sanitized_in_production(self):
        assert sanitize_error_message(ValueError("secret path"), is_production=True) == "Invalid input"
        assert sanitize_error_message(ValueError("detail"), is_production=False) == "detail"
