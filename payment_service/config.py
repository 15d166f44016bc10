"""Application configuration settings."""
from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Environments where Base.metadata.create_all() is tolerated at startup.
ALLOWED_CREATE_ENV = {"dev", "local", "test"}


class Settings(BaseSettings):
    """Environment configuration for the payment service."""

    app_env: str = Field(default="dev", validation_alias=AliasChoices("APP_ENV", "app_env"))
    database_url: str = "sqlite:///payments.db"
    LOG_LEVEL: str = "INFO"
    ALLOW_DB_CREATE_ALL: bool = False
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 15.0
    SQLITE_JOURNAL_MODE: str = "WAL"
    ALEMBIC_CONFIG: str = "alembic.ini"

    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True

    # --- Payments --------------------------------------------------------
    DEFAULT_PAGE_SIZE: int = Field(default=20, ge=1)
    MAX_PAGE_SIZE: int = Field(default=100, ge=1)
    TRANSACTION_REFERENCE_PREFIX: str = "TXN-"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("SENTRY_DSN")
    @classmethod
    def _strip_empty_dsn(cls, value: str | None) -> str | None:
        """Normalise empty DSNs to ``None`` so Sentry stays disabled."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("app_env")
    @classmethod
    def _lower_env(cls, value: str) -> str:
        return value.strip().lower()


class AppInfo(BaseModel):
    name: str = "payment-service"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ALLOWED_CREATE_ENV",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
