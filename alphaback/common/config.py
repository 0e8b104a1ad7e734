"""Application configuration via environment variables.

Uses pydantic-settings to load from .env file and environment variables.
All config is centralized here: modules should import `get_settings()`.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ─── App ───
    environment: str = "development"
    log_level: str = "INFO"

    # ─── Simulation ───
    starting_capital: float = 100_000.0
    decision_timeout_seconds: float = 5.0  # <= 0 disables the per-call bound
    default_time_step: str = "TIME_SERIES_DAILY"

    # ─── Market Data Provider ───
    market_data_url: str | None = None
    market_data_api_key: str | None = None
    market_data_timeout_seconds: float = 30.0

    # ─── Strategy Plugins ───
    plugin_dir: str = "models"
    plugin_registry_url: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton.

    Uses lru_cache so Settings is only instantiated once.
    In tests, call `get_settings.cache_clear()` to reset.
    """
    return Settings()
