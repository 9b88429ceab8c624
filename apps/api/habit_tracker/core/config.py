from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyUrl, Field
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_env: str = Field(default="development", alias="APP_ENV")
    frontend_url: AnyUrl = Field(alias="FRONTEND_URL")
    # Calendar day boundaries for streaks are evaluated in this zone.
    app_timezone: str = Field(default="UTC", alias="APP_TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Supabase
    supabase_url: AnyUrl = Field(alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(alias="SUPABASE_SERVICE_ROLE_KEY")
    http_timeout_seconds: float = Field(default=30.0, alias="HTTP_TIMEOUT_SECONDS")
    tasks_fetch_limit: int = Field(default=5000, alias="TASKS_FETCH_LIMIT")

    # Observability
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    sentry_traces_sample_rate: float = Field(
        default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE"
    )

    @model_validator(mode="after")
    def validate_runtime_constraints(self) -> "Settings":
        env = (self.app_env or "").strip().lower()
        is_prod = env in {"production", "prod"}

        frontend_origin = urlparse(str(self.frontend_url))
        frontend_host = (frontend_origin.hostname or "").lower()
        if is_prod and frontend_host in {"localhost", "127.0.0.1"}:
            raise ValueError(
                "Invalid FRONTEND_URL for production: localhost is not allowed. "
                "Set FRONTEND_URL to your public web domain."
            )

        supabase_origin = urlparse(str(self.supabase_url))
        supabase_host = (supabase_origin.hostname or "").lower()
        if is_prod and supabase_host in {"localhost", "127.0.0.1"}:
            raise ValueError(
                "Invalid SUPABASE_URL for production: localhost is not allowed."
            )

        try:
            ZoneInfo(self.app_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"APP_TIMEZONE is not a known time zone: {self.app_timezone}"
            ) from exc

        level = (self.log_level or "").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL is not a logging level: {self.log_level}")
        self.log_level = level

        if not (1 <= self.http_timeout_seconds <= 120):
            raise ValueError("HTTP_TIMEOUT_SECONDS must be between 1 and 120")
        if not (1 <= self.tasks_fetch_limit <= 50000):
            raise ValueError("TASKS_FETCH_LIMIT must be 1..50000")

        return self

    def is_production(self) -> bool:
        return (self.app_env or "").strip().lower() in {"production", "prod"}


settings = Settings()  # type: ignore[call-arg]  # singleton import via env settings
