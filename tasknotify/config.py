# tasknotify/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"

    # Security
    admin_token: str | None = None  # Bearer token for operator endpoints (/notifications/*)

    # Notifications
    notifications_enabled: bool = False  # Master switch: when off, dispatch is a no-op
    agent_base_url: str = "http://localhost:3100"  # WhatsApp delivery agent (exposes /health and /api/send)
    sender_address: str | None = None  # Dedicated bot number used as the "from" identity

    # Address normalization
    default_routing_prefix: str = "91"  # Country code prepended to local subscriber numbers
    local_number_length: int = 10

    # Timeouts (seconds)
    health_timeout_seconds: float = 3.0
    send_timeout_seconds: float = 5.0
    artifact_timeout_seconds: float = 8.0  # QR rendering + disk write
    dispatch_deadline_seconds: float = 30.0  # Whole batch, health probe included

    # Fan-out
    max_concurrency: int = 5  # In-flight recipient operations per dispatch

    # Fallback artifacts (QR codes)
    artifact_retention: int = 200  # Entries kept in the in-process artifact log
    artifact_dir: str = "public/whatsapp-qr"
    artifact_public_prefix: str = "/whatsapp-qr"

    # Templates
    product_name: str = "Hearing Hope"
    system_name: str = "Task Management System"
    preview_length: int = 150

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    def validate_required_for_production(self) -> list[str]:
        """Names of settings that must be set before serving in prod."""
        if not self.is_production:
            return []

        required = {"admin_token": self.admin_token}
        if self.notifications_enabled:
            required["agent_base_url"] = self.agent_base_url

        return [name for name, value in required.items() if not value]


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    # --- Admin / Security ---
    if s.is_production and not s.admin_token:
        warnings.append("prod: admin_token is missing (operator endpoints will return 503).")

    # --- Routing ---
    prefix = s.default_routing_prefix
    if not prefix.isdigit() or prefix.startswith("0"):
        warnings.append(
            f"default_routing_prefix={prefix!r} must be digits without a leading zero "
            "(address normalization would not be idempotent)."
        )

    # --- Delivery agent ---
    if s.notifications_enabled and not s.sender_address:
        warnings.append("sender_address is not set (bot chat links are unavailable).")

    # --- Timeouts ---
    if s.dispatch_deadline_seconds < s.health_timeout_seconds + s.send_timeout_seconds:
        warnings.append(
            "dispatch_deadline_seconds is shorter than health + send timeouts "
            "(recipients may time out even when the agent is healthy)."
        )

    if s.max_concurrency < 1:
        warnings.append("max_concurrency < 1: treated as 1 (recipients are sent one at a time).")

    if s.artifact_retention < 1:
        warnings.append("artifact_retention < 1: only the latest fallback artifact is kept.")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")


settings = Settings()
validate_or_warn(settings)
