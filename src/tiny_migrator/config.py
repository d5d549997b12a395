"""Configuration management for tiny-migrator."""

import logging
import os
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .migrations.versioner import DEFAULT_VERSION_TABLE
from .utils import ensure_dir, expand_path

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Config(BaseModel):
    """Configuration for tiny-migrator.

    Pydantic model that automatically validates configuration values,
    including path expansion and log level checking.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state_file: Path
    version_table: str = Field(default=DEFAULT_VERSION_TABLE, min_length=1)
    log_level: str = "INFO"

    @field_validator("state_file", mode="before")
    @classmethod
    def expand_paths(cls, v: str | Path) -> Path:
        """Expand path strings with ~ and environment variables."""
        if isinstance(v, str):
            return expand_path(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = str(v).upper().strip()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{v}'")
        return level

    def save(self, path: Path) -> None:
        """
        Save configuration to TOML file.

        Args:
            path: Path to save config file
        """
        ensure_dir(path.parent)

        data = {
            "store": {
                "state_file": str(self.state_file),
                "version_table": self.version_table,
            },
            "logging": {
                "level": self.log_level,
            },
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)


def get_config_path() -> Path:
    """
    Get configuration file path.

    Priority:
    1. TINY_MIGRATOR_CONFIG environment variable
    2. Default: ~/.config/tiny-migrator/config.toml

    Returns:
        Path to config file
    """
    env_config = os.environ.get("TINY_MIGRATOR_CONFIG")
    if env_config:
        return expand_path(env_config)

    return expand_path("~/.config/tiny-migrator/config.toml")


def create_default_config() -> Config:
    """
    Create default configuration.

    Returns:
        Config instance with default values
    """
    return Config(state_file=expand_path("~/.local/share/tiny-migrator/db.json"))


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML file using Pydantic validation.

    Args:
        config_path: Optional custom config path

    Returns:
        Config instance with validated values

    Raises:
        ValueError: If the file is not valid TOML or config validation fails
    """
    if config_path is None:
        config_path = get_config_path()

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        # Flatten TOML structure to match Config model fields
        flat_data = {
            "state_file": data.get("store", {}).get("state_file", "~/.local/share/tiny-migrator/db.json"),
            "version_table": data.get("store", {}).get("version_table", DEFAULT_VERSION_TABLE),
            "log_level": data.get("logging", {}).get("level", "INFO"),
        }

        return Config.model_validate(flat_data)

    config = create_default_config()

    try:
        config.save(config_path)
    except (OSError, PermissionError) as e:
        # Don't fail if we can't save (e.g., read-only filesystem), use in-memory config
        logger.warning(f"Could not save default config to {config_path}: {e}")

    return config
