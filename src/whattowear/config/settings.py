"""Application settings.

All configuration is sourced from environment variables (and optionally `.env`).
Command-line flags take precedence over these values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed environment-backed settings for what-to-wear."""

    model_config = SettingsConfigDict(
        env_prefix="WHATTOWEAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Message configuration file (YAML)
    config_file: Optional[Path] = None

    # Logging
    log_level: str = "ERROR"
    json_logs: bool = False

    # Thread pool size used when evaluating messages (1 = sequential)
    max_workers: int = Field(default=1, ge=1)
