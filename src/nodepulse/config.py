"""Process-wide settings for NodePulse."""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables and an optional .env file."""

    model_config = SettingsConfigDict(
        env_prefix="NODEPULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Agent config file used when the CLI gets no --config
    config_path: Optional[Path] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None


settings = Settings()
