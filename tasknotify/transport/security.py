# tasknotify/transport/security.py
"""
Operator API auth and response hardening.

The admin token is compared in constant time and never logged.  Production
responses carry generic error text only.
"""
import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tasknotify.config import settings
from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

MIN_TOKEN_LENGTH = 32
WEAK_TOKEN_FRAGMENTS = ("password", "secret", "token", "admin", "test", "demo", "123456", "000000")

GENERIC_ERRORS = {
    "ValueError": "Invalid input",
    "KeyError": "Invalid request",
    "ConnectionError": "Service temporarily unavailable",
    "TimeoutError": "Request timeout",
}

bearer_scheme = HTTPBearer(
    scheme_name="Admin Token",
    description="ADMIN_TOKEN, sent as 'Authorization: Bearer <token>'",
    auto_error=False,
)


def validate_token_strength(token: str, token_name: str = "token") -> list[str]:
    """Return human-readable warnings; empty when the token looks strong."""
    problems = []
    if len(token) < MIN_TOKEN_LENGTH:
        problems.append(f"{token_name} is shorter than {MIN_TOKEN_LENGTH} characters")

    weak = next((f for f in WEAK_TOKEN_FRAGMENTS if f in token.lower()), None)
    if weak:
        problems.append(f"{token_name} contains weak pattern '{weak}'")
    return problems


def check_configured_tokens() -> None:
    if settings.admin_token:
        for problem in validate_token_strength(settings.admin_token, "ADMIN_TOKEN"):
            logger.warning("SECURITY: %s", problem)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
):
    """
    Dependency guarding the operator endpoints.

    503 when no ADMIN_TOKEN is configured (fail closed), 401 on a missing
    or wrong bearer token.
    """
    expected = settings.admin_token
    if not expected:
        logger.critical("ADMIN_TOKEN not configured but admin endpoint accessed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unavailable",
        )

    if credentials is None:
        raise _unauthorized("Missing Authorization header")

    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        logger.warning("Admin auth failed: invalid token")
        raise _unauthorized("Invalid token")


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """Full message in dev, a fixed phrase per exception type in production."""
    if not is_production:
        return str(error)
    return GENERIC_ERRORS.get(type(error).__name__, "An error occurred")


class SecurityHeaders:
    BASE_HEADERS = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "no-referrer",
    }

    @classmethod
    def add_security_headers(cls, response):
        response.headers.update(cls.BASE_HEADERS)
        # Static QR images set their own caching headers.
        response.headers.setdefault("Cache-Control", "no-store")

        if settings.is_production or settings.is_staging:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
