"""
safeaction.settings - Centralized Configuration

Loads from .env files and environment variables using pydantic-settings.
All SAFE_ACTION_* prefixed env vars are loaded automatically.

Usage:
    >>> from safeaction.settings import get_settings
    >>> settings = get_settings()
    >>> settings.actions_dir
    PosixPath('server/actions')
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from safeaction.discovery import ACTIONS_ROUTE_PREFIX


class SafeActionSettings(BaseSettings):
    """safeaction configuration loaded from .env / environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SAFE_ACTION_",
        extra="ignore",
    )

    # -- Environment -----------------------------------------------------------
    env: str = "development"

    # -- Discovery & synthesis -------------------------------------------------
    actions_dir: Path = Path("server/actions")
    route_prefix: str = ACTIONS_ROUTE_PREFIX
    references_path: Path = Path(".safeaction/actions.py")

    # -- API Server ------------------------------------------------------------
    # Defaults to loopback; set SAFE_ACTION_API_HOST=0.0.0.0 for container use.
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Validators ------------------------------------------------------------

    @field_validator("route_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        """Ensure a single leading slash and no trailing slash."""
        return "/" + value.strip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_settings() -> SafeActionSettings:
    """Return the cached SafeActionSettings singleton."""
    return SafeActionSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()
