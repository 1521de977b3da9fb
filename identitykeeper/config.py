"""
Application Configuration.

Pydantic Settings model for IdentityKeeper.  Values are read from
environment variables and an optional ``.env`` file.  Pass an
``AppConfig`` instance to the components that need it; ``get_config()``
exists for the logger and for callers without an injection path.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Identity store (SQLite) ---
    SQLITE_PATH: str = "identitykeeper.db"

    # --- User cache (Redis hash) ---
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT_S: float = 2.0
    USER_CACHE_KEY: str = "_users"

    # --- Listing ---
    ITEMS_PER_PAGE: int = Field(default=20, ge=1, le=1000)

    # --- Account defaults & input limits ---
    DEFAULT_IMAGE_URL: str = "https://www.gravatar.com/avatar/?d=mp"
    SALT_LENGTH: int = Field(default=64, ge=16, le=128)
    NAME_MAX_LENGTH: int = 100
    EMAIL_MAX_LENGTH: int = 100

    # --- Logging ---
    # Empty string disables the rotating file handler (console only).
    LOG_FILE: str = "identitykeeper.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when running purely on defaults."""
        _log = logging.getLogger("identitykeeper.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; configuration loaded from "
                "environment variables or defaults."
            )

        if not self.DEFAULT_IMAGE_URL.strip():
            raise ValueError("DEFAULT_IMAGE_URL must not be empty")

        return self


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path never touches the
    lock once the instance exists.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next ``get_config()`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None
