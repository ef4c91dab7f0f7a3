"""Application configuration using pydantic-settings."""

import logging
import threading
from typing import Callable

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.emitter import Emitter

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./preferences.db"
    DATABASE_REPLICA_URL: str = ""  # empty -> reads go to the primary
    DATABASE_TIMEOUT_SECONDS: int = 30

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("DATABASE_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("DATABASE_TIMEOUT_SECONDS must be positive")
        return v

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()


ConfigListener = Callable[[Settings, Settings], None]


class ConfigWatcher:
    """Holds the active Settings and notifies listeners when they change.

    Listeners are called synchronously with ``(old, new)`` from whichever
    thread calls :meth:`set` or :meth:`reload`.
    """

    def __init__(self, initial: Settings | None = None):
        self._current = initial or settings
        self._emitter = Emitter()
        self._lock = threading.Lock()

    def get(self) -> Settings:
        return self._current

    def add_listener(self, listener: ConfigListener) -> str:
        """Register a listener; returns an id for :meth:`remove_listener`."""
        return self._emitter.add_listener(listener)

    def remove_listener(self, listener_id: str) -> None:
        self._emitter.remove_listener(listener_id)

    def set(self, new: Settings) -> Settings:
        """Replace the active settings and notify listeners. Returns the old settings.

        Concurrent calls each see a distinct ``old``; listeners run outside
        the lock and may call :meth:`get` or :meth:`set`.
        """
        with self._lock:
            old = self._current
            self._current = new
        logger.info("Configuration updated (environment=%s)", new.ENVIRONMENT)
        self._emitter.notify(old, new)
        return old

    def reload(self) -> Settings:
        """Re-read settings from the environment and notify listeners."""
        return self.set(Settings())
