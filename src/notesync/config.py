"""Configuration management for notesync."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend
    backend_url: str = Field(
        default="http://localhost:8080/api",
        description="Base URL of the notes backend API",
    )
    api_token: str = Field(
        default="",
        description="Session token from 'notesync login' (empty when signed out)",
    )
    username: str = Field(
        default="",
        description="Default username for 'notesync login'",
    )
    request_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout in seconds for a single backend request",
    )

    # Sync
    max_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Worker threads used for background backend calls",
    )
    poll_interval: float = Field(
        default=5.0,
        ge=0.5,
        le=3600.0,
        description="Seconds between change feed polls in 'notesync watch'",
    )

    # Logging
    log_level: str = Field(
        default="WARNING",
        description="Log level for the notesync logger",
    )

    @property
    def is_authenticated(self) -> bool:
        """Whether a session token is configured."""
        return bool(self.api_token)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
