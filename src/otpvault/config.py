"""Central configuration loaded from environment variables (OTPVAULT_*) and .env."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_KEY = "authenticator_accounts"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OTPVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".otpvault")
    storage_file: str = "accounts.json"
    storage_key: str = STORAGE_KEY

    # Encryption at rest (base64, 32 bytes); empty keeps the snapshot in plain JSON
    master_key: str = ""

    # Manual entry
    min_secret_length: int = Field(default=16, ge=1)

    # Display refresh cadence in seconds
    refresh_interval: float = Field(default=1.0, gt=0)

    log_level: str = "WARNING"

    @property
    def storage_path(self) -> Path:
        return self.data_dir / self.storage_file


settings = Settings()
