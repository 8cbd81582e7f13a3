"""
Central configuration for the kitecli API access layer.

All settings are loaded from environment variables (or a ``.env`` file)
with sensible defaults. Every component accepts explicit overrides and
falls back to the module-level ``settings`` singleton.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


def _xdg_dir(env_var: str, fallback: str) -> Path:
    base = os.environ.get(env_var)
    root = Path(base) if base else Path.home() / fallback
    return root / "kitecli"


def _default_cache_dir() -> Path:
    return _xdg_dir("XDG_CACHE_HOME", ".cache") / "instruments"


def _default_config_dir() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    log_level: str = "INFO"

    # --- Kite Connect credentials ---
    kite_api_key: str = ""
    kite_api_secret: str = ""

    # --- Kite Connect endpoints ---
    kite_base_url: str = "https://api.kite.trade"
    kite_login_url: str = "https://kite.zerodha.com/connect/login"
    kite_api_version: str = "3"
    user_agent: str = "kitecli/0.1.0"
    request_timeout_seconds: float = 30.0

    # --- Rate limiting (Kite Connect allows 3 requests/second) ---
    rate_limit_per_second: int = 3
    rate_limit_timeout_seconds: float = 30.0
    rate_limit_poll_seconds: float = 0.1

    # --- Transport retries ---
    max_retries: int = 3
    retry_backoff_seconds: float = 0.1
    # POST is excluded: a retried timeout could place an order twice
    retry_methods: list[str] = Field(
        default_factory=lambda: ["GET", "HEAD", "OPTIONS", "DELETE"]
    )

    # --- Session & cache lifetimes ---
    token_lifetime_hours: float = 24.0
    instrument_cache_ttl_hours: float = 24.0

    # --- Local state ---
    cache_dir: Path = Field(default_factory=_default_cache_dir)
    config_dir: Path = Field(default_factory=_default_config_dir)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def credentials_path(self) -> Path:
        return self.config_dir / "credentials.json"


# Singleton settings instance
settings = Settings()
