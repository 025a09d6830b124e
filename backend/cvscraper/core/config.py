"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://comicvine.gamespot.com/api"


class Settings(BaseSettings):
    """Scraper settings.

    Settings are loaded from (lowest to highest priority):
    1. .env file
    2. Environment variables
    3. Init settings (values passed to Settings())

    All settings are prefixed with CVSCRAPER_ (e.g., CVSCRAPER_API_KEY=...).

    See: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CVSCRAPER_",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # Application
    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    logs_dir: Path | None = Field(
        default=None,
        description="Directory for JSON log files. Logs go to stdout when unset.",
    )

    # ComicVine access
    api_key: str | None = Field(
        default=None,
        description="ComicVine API key (get one at https://comicvine.gamespot.com/api/)",
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="ComicVine API base URL",
    )
    user_agent: str = Field(
        default="cvscraper/0.1 (+https://comicvine.gamespot.com/api/)",
        description="User-Agent header sent with every catalog request",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="HTTP timeout for a single catalog request",
    )

    # Rate limiting (ComicVine: 200 requests/hour/endpoint, 1 second between any requests)
    rate_limit: int = Field(
        default=200,
        ge=1,
        description="Maximum requests per endpoint inside the rolling window",
    )
    rate_limit_window_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Length of the rolling rate limit window",
    )
    min_request_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Minimum spacing between any two catalog requests",
    )

    # Search limits
    issue_search_limit: int = Field(default=25, ge=1, le=100)
    volume_search_limit: int = Field(default=100, ge=1, le=100)

    # Batch scraping
    auto_apply_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Minimum match score for a batch scrape to accept the best candidate",
    )
    enable_issue_count_sync: bool = Field(
        default=False,
        description="Include the volume issue count in metadata update fields",
    )

    @field_validator("api_key")
    @classmethod
    def _blank_api_key_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("Base URL must be a non-empty string.")
        return value

    @property
    def is_debug(self) -> bool:
        """Check if running in debug/development mode."""
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.env == "testing"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance.

    Creates and caches the settings instance on first call.
    Subsequent calls return the cached instance.

    Returns:
        Settings instance
    """
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from all sources (.env, env vars).

    Clears the cache and creates a new Settings instance.
    Useful for testing or when settings change.

    Returns:
        New Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
