"""Pydantic models for the build configuration file.

The configuration lists build-wide environment defaults and an ordered
sequence of jobs. Models are frozen: a configuration is read-only once
loaded.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_env(value: Any) -> Any:
    """Normalise YAML scalars in an env mapping to strings."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        return value
    result: dict[Any, Any] = {}
    for key, item in value.items():
        if item is None:
            result[key] = ""
        elif isinstance(item, bool):
            result[key] = "true" if item else "false"
        elif isinstance(item, (int, float)):
            result[key] = str(item)
        else:
            result[key] = item
    return result


class BuildJobSchema(BaseModel):
    """A single job executed inside one container.

    Attributes:
        name: Job name used for logging and status display.
        image: Container image reference.
        scripts: Shell lines executed in order by one entry-point script.
        env: Variables for the job; values may reference other variables.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, description="Job name")
    image: str = Field(min_length=1, description="Container image reference")
    scripts: list[str] = Field(default_factory=list, description="Shell lines")
    env: dict[str, str] = Field(default_factory=dict, description="Job variables")

    @field_validator("scripts", mode="before")
    @classmethod
    def validate_scripts(cls, v: Any) -> Any:
        """Treat an empty ``scripts:`` key as no scripts."""
        return [] if v is None else v

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: Any) -> Any:
        """Accept numeric, boolean and null values in the env mapping."""
        return _coerce_env(v)


class BuildConfigSchema(BaseModel):
    """Top-level build configuration.

    Attributes:
        env: Build-wide variables visible to every job.
        jobs: Jobs in execution order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    env: dict[str, str] = Field(default_factory=dict, description="Build variables")
    jobs: list[BuildJobSchema] = Field(default_factory=list, description="Jobs")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: Any) -> Any:
        """Accept numeric, boolean and null values in the env mapping."""
        return _coerce_env(v)

    @field_validator("jobs", mode="before")
    @classmethod
    def validate_jobs(cls, v: Any) -> Any:
        """Treat an empty ``jobs:`` key as no jobs."""
        return [] if v is None else v


__all__ = ["BuildConfigSchema", "BuildJobSchema"]
