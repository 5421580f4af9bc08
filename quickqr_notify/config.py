"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./quickqr_notifications.db",
        description="Database connection URL used by SQLAlchemy",
        min_length=1,
    )
    secret_key: str = Field(
        description="Secret key used to verify (and, in dev tooling, sign) JWT tokens",
        min_length=1,
    )
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        description="Lifetime of tokens issued by the dev tooling",
        gt=0,
    )
    notification_retention: int = Field(
        default=100,
        description="Number of most recent notifications kept per recipient",
        ge=1,
    )
    default_page_size: int = Field(
        default=20,
        description="Page size used when the client does not send one",
        ge=1,
        le=100,
    )
    ping_interval_seconds: float = Field(
        default=25.0,
        description="Seconds between heartbeat pings on a live channel",
        gt=0,
    )
    ping_timeout_seconds: float = Field(
        default=60.0,
        description="Seconds of peer silence after which a channel is closed",
        gt=0,
    )
    send_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for a single push to one channel",
        gt=0,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API from a browser",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @model_validator(mode="after")
    def _validate_heartbeat(self) -> "Settings":
        if self.ping_timeout_seconds <= self.ping_interval_seconds:
            raise ValueError(
                "PING_TIMEOUT_SECONDS must be greater than PING_INTERVAL_SECONDS"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
