"""Runtime settings from environment variables and an optional .env file.

Priority (highest first): explicit keyword arguments (CLI flags),
``DESCBOT_*`` environment variables, the ``.env`` file, code defaults.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .commands import DEFAULT_PREFIX


class BotSettings(BaseSettings):
    """Tunables consumed at the core's boundary."""

    model_config = SettingsConfigDict(
        env_prefix="DESCBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    descriptions_path: Path = Path("descriptions.json")
    command_prefix: str = DEFAULT_PREFIX
    min_update_interval: float = Field(default=60.0, ge=0)  # seconds between description updates
    backoff_max_delay: float = Field(default=3600.0, gt=0)  # ceiling for flood-wait backoff
    inbox_size: int = Field(default=100, ge=1)
    persist_edits: bool = True
    log_level: str = "info"
    log_json: bool = False
