"""Configuration settings for gobuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI arguments > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = ".gobuild.yaml"
DEFAULT_TEMP_FOLDER_NAME = ".gobuild"
DEFAULT_MOUNT_PATH = "/var/gobuild"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the GOBUILD_ prefix.
    The positional CLI argument overrides ``config_file``.
    """

    model_config = SettingsConfigDict(
        env_prefix="GOBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_file: Path = Field(
        default=Path(DEFAULT_CONFIG_FILE),
        description="Build configuration file read when no path is given",
    )
    temp_folder_name: str = Field(
        default=DEFAULT_TEMP_FOLDER_NAME,
        min_length=1,
        description="Folder below the working directory for generated scripts",
    )
    mount_path: str = Field(
        default=DEFAULT_MOUNT_PATH,
        description="Path inside the container where the working directory is mounted",
    )
    container_runtime: str = Field(
        default="docker",
        min_length=1,
        description="Container runtime executable",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_MOUNT_PATH",
    "DEFAULT_TEMP_FOLDER_NAME",
    "Settings",
    "get_settings",
    "print_settings_json",
]
