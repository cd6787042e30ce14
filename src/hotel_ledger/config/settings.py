"""Configuration settings for the hotel ledger."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote store
    remote_store_url: str = Field(
        default="http://localhost:54321", validation_alias="REMOTE_STORE_URL"
    )
    remote_store_key: SecretStr = Field(
        default=SecretStr(""), validation_alias="REMOTE_STORE_KEY"
    )
    remote_store_timeout: float = Field(default=10.0, validation_alias="REMOTE_STORE_TIMEOUT")
    remote_store_max_retries: int = Field(
        default=2, validation_alias="REMOTE_STORE_MAX_RETRIES"
    )

    # Auth provider (empty means same host as the remote store)
    auth_url: str = Field(default="", validation_alias="AUTH_URL")

    # Local snapshot
    data_dir: Path = Field(default=Path(".hotel_ledger"), validation_alias="LEDGER_DATA_DIR")
    storage_key: str = Field(default="hotel_pro_data", validation_alias="LEDGER_STORAGE_KEY")

    # Every calendar-day computation uses this zone
    timezone: str = Field(default="UTC", validation_alias="LEDGER_TIMEZONE")

    dashboard_window_months: int = Field(
        default=6, validation_alias="DASHBOARD_WINDOW_MONTHS"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @property
    def snapshot_path(self) -> Path:
        """Location of the persisted store document."""
        return self.data_dir / f"{self.storage_key}.json"

    @property
    def resolved_auth_url(self) -> str:
        return (self.auth_url or self.remote_store_url).rstrip("/")


@lru_cache
def get_settings() -> LedgerSettings:
    """Get cached settings instance."""
    return LedgerSettings()
