"""Application configuration for the reservation service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .room import CHECKOUT_SESSION_MINUTES, CHECKOUT_WARNING_THRESHOLD_SECONDS, LOCK_DURATION_HOURS


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    database_url: str = Field(default="sqlite+aiosqlite:///./subletto.db")
    database_ssl_required: bool = Field(default=False)

    lock_duration_hours: int = Field(default=LOCK_DURATION_HOURS, ge=1)
    checkout_session_minutes: int = Field(default=CHECKOUT_SESSION_MINUTES, ge=1)
    checkout_warning_seconds: int = Field(default=CHECKOUT_WARNING_THRESHOLD_SECONDS, ge=0)

    expiry_sweep_enabled: bool = Field(default=True)
    expiry_sweep_interval_seconds: float = Field(default=60.0, gt=0)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        """Allow comma-separated env values for CORS origins."""

        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def database_async_url(self) -> str:
        """Return the database URL with an async driver selected."""

        url = self.database_url
        if url.startswith("postgres://"):
            return "postgresql+asyncpg://" + url[len("postgres://"):]
        if url.startswith("postgresql://"):
            return "postgresql+asyncpg://" + url[len("postgresql://"):]
        if url.startswith("sqlite:///"):
            return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
        return url


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
