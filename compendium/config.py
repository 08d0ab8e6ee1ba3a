"""
Configuration settings for the Compendium sync client.

Uses environment variables (prefixed ``COMPENDIUM_``) with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COMPENDIUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    api_url: str = "https://compendiumnew.mentalisit.myds.me/compendium"
    request_timeout: float = Field(default=30.0, gt=0)

    # Storage
    storage_key: str = "hscompendium"
    storage_path: Path = Field(default_factory=lambda: Path.home() / ".hscompendium" / "storage.db")

    # Background refresh
    refresh_interval_seconds: float = Field(default=300.0, gt=0)  # 5 minutes
    token_max_age_days: float = Field(default=90.0, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints are appended as '/path'."""
        return v.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def refresh_interval_ms(self) -> int:
        return int(self.refresh_interval_seconds * 1000)

    @property
    def token_max_age_ms(self) -> int:
        return int(self.token_max_age_days * 24 * 60 * 60 * 1000)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
