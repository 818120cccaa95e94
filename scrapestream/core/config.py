"""
Client configuration and settings.

Centralises all external configuration (env-vars / .env) and
version discovery.  Every service reads its defaults from
``get_settings()`` so tests can patch a single function.
"""

from __future__ import annotations

import importlib.metadata
import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# ── Package version (single source of truth from pyproject.toml) ────────


def get_version() -> str:
    """Return the installed package version.

    Falls back to ``"0.0.0-dev"`` when the package metadata
    is not available (e.g. during editable / source installs).

    Returns:
        Semantic version string.
    """
    try:
        return importlib.metadata.version("scrapestream")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


# ── Settings ────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # General
    APP_NAME: str = "ScrapeStream"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Remote scraping service
    SCRAPER_BASE_URL: str = "http://localhost:3001"

    # ── Bounded waits ───────────────────────────────────────────────
    # The scrape stream itself has no timeout; it runs until a
    # terminal event, an error, or an explicit stop.
    EXPORT_TIMEOUT: float = 30.0  # seconds
    STOP_TIMEOUT: float = 10.0  # seconds
    EXPORT_FETCH_RETRIES: int = 2

    # ── Exports ─────────────────────────────────────────────────────
    EXPORT_DIR: str = "."
    SPREADSHEET_FILENAME: str = "google_maps_results.xlsx"
    CSV_FILENAME_PREFIX: str = "google_maps_results"

    @field_validator("SCRAPER_BASE_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        """Normalise the base URL so paths can be joined safely."""
        return v.rstrip("/")

    @field_validator("EXPORT_TIMEOUT", "STOP_TIMEOUT")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        """Reject zero or negative timeouts."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Using ``lru_cache`` ensures the .env file is read exactly
    once.  Tests construct ``Settings(_env_file=None, ...)``
    directly or patch this function.
    """
    return Settings()
