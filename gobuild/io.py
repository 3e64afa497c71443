"""Build configuration loading.

Reads the YAML configuration file and validates it into a
BuildConfigSchema. Read and parse failures are reported as distinct
error kinds so the CLI can tell the user which step went wrong.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from gobuild.schema import BuildConfigSchema


class ConfigReadError(Exception):
    """Raised when the configuration file cannot be read."""

    def __init__(self, message: str, code: str = "config_read_error") -> None:
        super().__init__(message)
        self.code = code


class ConfigParseError(Exception):
    """Raised when the configuration file is not a valid build config."""

    def __init__(self, message: str, code: str = "config_parse_error") -> None:
        super().__init__(message)
        self.code = code


def read_config_text(path: Path) -> str:
    """Read the raw configuration text.

    Raises:
        ConfigReadError: If the file cannot be read.
    """
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigReadError(f"Could not read config file {path}: {e}") from e


def parse_config_text(text: str, source: str = "<string>") -> BuildConfigSchema:
    """Parse and validate YAML configuration text.

    Args:
        text: YAML document.
        source: Name of the document, used in error messages.

    Returns:
        Validated BuildConfigSchema instance.

    Raises:
        ConfigParseError: If the YAML is invalid or does not match the schema.
    """
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Could not parse yaml in config file {source}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigParseError(
            f"Expected a YAML mapping in config file {source}, got {type(data).__name__}"
        )

    try:
        return BuildConfigSchema.model_validate(data)
    except ValidationError as e:
        raise ConfigParseError(f"Invalid build configuration in {source}: {e}") from e


def load_build_config(path: Path) -> BuildConfigSchema:
    """Load and validate a build configuration file.

    Raises:
        ConfigReadError: If the file cannot be read.
        ConfigParseError: If the content is not a valid build configuration.
    """
    text = read_config_text(path)
    return parse_config_text(text, source=str(path))


__all__ = [
    "ConfigParseError",
    "ConfigReadError",
    "load_build_config",
    "parse_config_text",
    "read_config_text",
]
