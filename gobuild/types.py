"""Shared type definitions for gobuild.

Kept in a separate module so that status tracking and orchestration can
share the job state enum without importing each other.
"""

from enum import Enum


class JobState(str, Enum):
    """Terminal (or initial) state of a single build job."""

    NOT_RUN = "NotRun"
    OK = "OK"
    FAILED = "Failed"
    ENTRY_POINT_CREATION_ERROR = "EntryPointCreationError"


__all__ = ["JobState"]
