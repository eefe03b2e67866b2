"""
Core configuration module for ArtNotify.
Uses pydantic-settings for environment variable management with full validation.
"""
from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────────────────
    APP_NAME: str = "ArtNotify"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # ── Endpoints ─────────────────────────────────────────────────────────────
    API_BASE_URL: str = "http://localhost:8000/api"
    WS_BASE_URL: str = "ws://localhost:8000"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # ── Realtime channel ──────────────────────────────────────────────────────
    RECONNECT_DELAY_SECONDS: float = 3.0
    NORMAL_CLOSURE_CODE: int = 1000

    # ── Notifications ─────────────────────────────────────────────────────────
    NOTIFICATIONS_PAGE_SIZE: int = 20
    DESKTOP_ALERTS_ENABLED: bool = True

    # ── Watcher credentials ───────────────────────────────────────────────────
    PRINCIPAL_ID: str | None = None
    ACCESS_TOKEN: str | None = None

    @field_validator("API_BASE_URL", "WS_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("RECONNECT_DELAY_SECONDS", "HTTP_TIMEOUT_SECONDS")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("NOTIFICATIONS_PAGE_SIZE")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("NOTIFICATIONS_PAGE_SIZE must be between 1 and 100")
        return v


settings = Settings()
