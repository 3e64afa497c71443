"""Entry-point script and env file generation for jobs.

This module handles:
- Deriving filesystem-safe artifact names from job names
- Rendering the POSIX entry-point script a container starts with
- Rendering the env file handed to the container runtime
- Writing both into the build's temp folder

Artifact names combine the job's ordinal position with its sanitized name,
so two jobs whose names sanitize to the same token do not collide.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from gobuild.environment import env_to_array

if TYPE_CHECKING:
    from gobuild.schema import BuildJobSchema

logger = logging.getLogger(__name__)

ENTRY_POINT_MODE = 0o755
ENV_FILE_MODE = 0o644

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_LINE_BREAK = re.compile(r"[\r\n]")


class ArtifactWriteError(Exception):
    """Raised when a generated script or env file cannot be written."""

    def __init__(
        self, message: str, path: Path, code: str = "artifact_write_error"
    ) -> None:
        super().__init__(message)
        self.path = path
        self.code = code


def sanitize_job_name(name: str) -> str:
    """Turn a job name into a filesystem-safe token.

    Spaces (and any other character that is unsafe in a file name) become
    hyphens.
    """
    return _UNSAFE_CHARS.sub("-", name)


def artifact_stem(index: int, name: str) -> str:
    """Base file name for a job's generated artifacts."""
    return f"{index:02d}-{sanitize_job_name(name)}"


def entry_point_name(index: int, name: str) -> str:
    """File name of a job's entry-point script."""
    return f"{artifact_stem(index, name)}.sh"


def env_file_name(index: int, name: str) -> str:
    """File name of a job's env file."""
    return f"{artifact_stem(index, name)}.env"


def render_entry_point(scripts: Iterable[str], mount_path: str) -> str:
    """Render the entry-point shell script.

    Every command is preceded by an ``echo /# <command>`` trace so the
    container output shows which command produced which lines.

    Args:
        scripts: Shell lines in execution order.
        mount_path: In-container path of the mounted working directory.

    Returns:
        Script text, every line newline-terminated.
    """
    lines = [
        "#!/bin/sh",
        "set -e",
        f"echo /# cd {mount_path}",
        f"cd {mount_path}",
    ]
    for script in scripts:
        lines.append(f"echo /# {script}")
        lines.append(script)
    return "".join(f"{line}\n" for line in lines)


def render_env_file(env: Mapping[str, str]) -> str:
    """Render ``KEY=VALUE`` lines, CRLF-terminated and sorted by key."""
    return "".join(f"{entry}\r\n" for entry in env_to_array(env))


def _write_artifact(path: Path, content: str, mode: int) -> Path:
    try:
        path.write_bytes(content.encode("utf-8"))
        path.chmod(mode)
    except OSError as e:
        raise ArtifactWriteError(f"Failed to write {path}: {e}", path=path) from e
    logger.debug("Wrote %s", path)
    return path


def write_entry_point(
    job: BuildJobSchema,
    index: int,
    mount_path: str,
    temp_folder: Path,
) -> Path:
    """Write a job's entry-point script into the temp folder.

    Args:
        job: Job whose scripts are rendered.
        index: Ordinal position of the job in the configuration.
        mount_path: In-container path of the mounted working directory.
        temp_folder: Host folder receiving the script.

    Returns:
        Path of the written script.

    Raises:
        ArtifactWriteError: If the file cannot be written.
    """
    path = temp_folder / entry_point_name(index, job.name)
    return _write_artifact(
        path, render_entry_point(job.scripts, mount_path), ENTRY_POINT_MODE
    )


def write_env_file(
    job: BuildJobSchema,
    index: int,
    env: Mapping[str, str],
    temp_folder: Path,
) -> Path:
    """Write a job's resolved environment as an env file.

    The env file holds one entry per line, so names and values containing
    a line break cannot be represented and are rejected.

    Raises:
        ArtifactWriteError: If an entry contains a line break or the file
            cannot be written.
    """
    path = temp_folder / env_file_name(index, job.name)
    for key, value in env.items():
        if _LINE_BREAK.search(key) or _LINE_BREAK.search(value):
            raise ArtifactWriteError(
                f"Failed to write {path}: variable {key!r} contains a line break",
                path=path,
            )
    return _write_artifact(path, render_env_file(env), ENV_FILE_MODE)


__all__ = [
    "ArtifactWriteError",
    "artifact_stem",
    "entry_point_name",
    "env_file_name",
    "render_entry_point",
    "render_env_file",
    "sanitize_job_name",
    "write_entry_point",
    "write_env_file",
]
