"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. All keys use
the ``COMPLIANCE_`` prefix and may also be supplied through a ``.env``
file in the working directory.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the compliance tracker backend.

    Environment variables are loaded from a ``.env`` file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMPLIANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── Storage ────────────────────────────────────────────────────────
    data_dir: str = ".data"
    storage_backend: Literal["file", "memory"] = "file"
    seed_default_categories: bool = True

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Reminders ──────────────────────────────────────────────────────
    enable_reminder_scheduler: bool = True
    reminder_interval_seconds: float = Field(default=300.0, gt=0)  # 5 minutes
    reminder_initial_delay_seconds: float = Field(default=5.0, ge=0)
    notification_dedup_hours: int = Field(default=24, ge=1)
    nearing_due_days: int = Field(default=3, ge=0)

    # ── Email (EmailJS REST API) ───────────────────────────────────────
    email_provider: Literal["emailjs", "log"] = "emailjs"
    emailjs_service_id: str = ""
    emailjs_template_id: str = ""
    emailjs_public_key: str = ""
    emailjs_private_key: str = ""
    emailjs_api_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    email_timeout_seconds: float = 10.0

    # ── Security ───────────────────────────────────────────────────────
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_configured(self) -> bool:
        return bool(
            self.emailjs_service_id
            and self.emailjs_template_id
            and self.emailjs_public_key
        )


# Module-level singleton: import ``settings`` everywhere.
settings = Settings()
