"""
Configuration management for the Lucha cart engine
"""

import threading

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lucha_cart.infrastructure.utilities.constants import (
    FileSettings,
    MoneySettings,
    StorageSettings,
)


class Settings(BaseSettings):
    """Cart settings"""

    model_config = SettingsConfigDict(
        env_prefix="CART_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Persistence
    storage_key: str = Field(StorageSettings.STORAGE_KEY)
    storage_mode: str = Field(StorageSettings.DEFAULT_STORAGE_MODE)
    database_url: str = Field(FileSettings.DEFAULT_DATABASE_PATH)
    session_id: str = Field(StorageSettings.DEFAULT_SESSION_ID)
    persist_debounce_ms: int = Field(StorageSettings.DEFAULT_DEBOUNCE_MS, ge=0)
    sync_poll_interval: float = Field(StorageSettings.DEFAULT_SYNC_POLL_SECONDS, ge=0)

    # Pricing
    require_price_cents: bool = Field(False)
    currency_symbol: str = Field(MoneySettings.DEFAULT_CURRENCY_SYMBOL)

    # Application settings
    log_level: str = Field("INFO")
    environment: str = Field("development")

    @field_validator("storage_mode")
    @classmethod
    def _check_storage_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("local", "session", "memory"):
            raise ValueError("storage_mode must be one of: local, session, memory")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_config() -> Settings:
    """Get the global settings instance, ensuring thread safety."""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings()
    return _settings_instance


def reset_config() -> None:
    """Drop the cached settings so the next get_config() re-reads the environment"""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None
