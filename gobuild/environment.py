"""Environment variable composition for build jobs.

This module handles:
- Parsing ``KEY=VALUE`` pairs into a mapping
- Shell-style soft expansion of ``${NAME}`` / ``$NAME`` placeholders
- Merging environments with overlay precedence
- Resolving the final environment of a job from host, build and job layers

All functions are pure: they return new mappings and never mutate inputs.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

_PLACEHOLDER = re.compile(
    r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))"
)


class MalformedEnvEntryError(ValueError):
    """Raised when an environment entry has no ``=`` separator."""

    def __init__(self, entry: str, code: str = "malformed_env_entry") -> None:
        super().__init__(f"Malformed environment entry (missing '='): {entry!r}")
        self.entry = entry
        self.code = code


def env_to_map(pairs: Iterable[str]) -> dict[str, str]:
    """Convert ``KEY=VALUE`` entries to a mapping.

    Each entry is split on the first ``=`` only, so values may contain
    further ``=`` characters. Later duplicates overwrite earlier ones.

    Args:
        pairs: Entries in ``KEY=VALUE`` form.

    Returns:
        Mapping of variable name to value.

    Raises:
        MalformedEnvEntryError: If an entry contains no ``=``.
    """
    result: dict[str, str] = {}
    for entry in pairs:
        key, sep, value = entry.partition("=")
        if not sep:
            raise MalformedEnvEntryError(entry)
        result[key] = value
    return result


def env_to_array(env: Mapping[str, str]) -> list[str]:
    """Convert a mapping to ``KEY=VALUE`` entries sorted by key."""
    return [f"{key}={env[key]}" for key in sorted(env)]


def expand_value(
    value: str,
    lookup: Mapping[str, str],
    keep_unresolved: bool = False,
) -> str:
    """Expand placeholders in a single value.

    Unknown names expand to an empty string unless ``keep_unresolved`` is
    set, in which case the placeholder text is left for a later pass. A
    ``$`` that does not start a valid placeholder is left untouched.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group("braced") or match.group("bare")
        if name in lookup:
            return lookup[name]
        return match.group(0) if keep_unresolved else ""

    return _PLACEHOLDER.sub(_replace, value)


def expand_env(
    env: Mapping[str, str],
    lookup: Mapping[str, str],
    keep_unresolved: bool = False,
) -> dict[str, str]:
    """Expand every value of ``env`` against ``lookup``.

    Args:
        env: Environment whose values may contain placeholders.
        lookup: Resolution source for placeholder names.
        keep_unresolved: Leave unknown placeholders in place instead of
            replacing them with an empty string.

    Returns:
        New mapping with expanded values.
    """
    return {
        key: expand_value(value, lookup, keep_unresolved)
        for key, value in env.items()
    }


def merge_env(base: Mapping[str, str], overlay: Mapping[str, str]) -> dict[str, str]:
    """Merge two environments.

    The result contains all variables from both environments.
    Variables from ``overlay`` overwrite variables from ``base``.
    """
    result = dict(base)
    result.update(overlay)
    return result


def resolve_job_env(
    build_env: Mapping[str, str],
    job_env: Mapping[str, str],
    host_env: Mapping[str, str],
) -> dict[str, str]:
    """Compute the final environment of a job.

    Build variables are expanded against the host environment. Job
    variables are expanded against the expanded build variables and then
    once more against the host, so a job variable may reference either
    layer. The first job pass keeps names it cannot resolve so the host
    pass still sees them. Build variables never see job variables.

    Args:
        build_env: Build-wide defaults from the configuration.
        job_env: Variables declared on the job.
        host_env: Environment of the host process.

    Returns:
        Expanded build environment with the expanded job environment on top.
    """
    expanded_build = expand_env(build_env, host_env)
    expanded_job = expand_env(
        expand_env(job_env, expanded_build, keep_unresolved=True), host_env
    )
    return merge_env(expanded_build, expanded_job)


__all__ = [
    "MalformedEnvEntryError",
    "env_to_array",
    "env_to_map",
    "expand_env",
    "expand_value",
    "merge_env",
    "resolve_job_env",
]
