"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: Path = Path("data/vanstock.sqlite3")

    # Application
    log_level: str = "INFO"

    # Monitoring (Sentry)
    sentry_dsn: str = ""
    environment: str = "production"

    # Order service (source of ordered quantities)
    order_sync_url: str = ""
    order_sync_api_key: str | None = None
    order_sync_timeout: float = 30.0
    order_statuses: str = "confirmed,pending,delivered"

    @field_validator("order_sync_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    def order_sync_enabled(self) -> bool:
        return bool(self.order_sync_url)

    def order_status_list(self) -> list[str]:
        """Order statuses that count towards ordered quantities."""
        return [s.strip().lower() for s in self.order_statuses.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
