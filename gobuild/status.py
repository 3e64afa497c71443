"""Per-job status and duration tracking.

Status entries are kept in a list parallel to the configured jobs and
addressed by ordinal position, so jobs sharing a name are tracked
separately. Only one job is active at a time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from gobuild.types import JobState

logger = logging.getLogger(__name__)

SEPARATOR = "-" * 67
COLUMN_PADDING = 4
NOT_RUN_DURATION = "None"


@dataclass
class JobStatus:
    """Status of a single job.

    Attributes:
        name: Job name, used for display only.
        status: Current state of the job.
        duration: Human-readable elapsed time, or "None" if not run.
    """

    name: str
    status: JobState = JobState.NOT_RUN
    duration: str = NOT_RUN_DURATION


@dataclass
class JobRun:
    """Handle for a job inside ``JobStatusTracker.track``."""

    index: int
    name: str
    status: JobState = JobState.OK


def _decimal(whole: int, fraction: int) -> str:
    return f"{whole}.{fraction:03d}".rstrip("0").rstrip(".")


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as a short human-readable string.

    The value is rounded to the printed precision before the unit is
    chosen, so ``0.9999996`` reads ``1s`` rather than ``1000ms``.

    Examples: ``850µs``, ``12.5ms``, ``1.204s``, ``2m3.5s``.
    """
    micros = round(seconds * 1_000_000)
    if micros < 1000:
        return f"{micros}µs"
    if micros < 1_000_000:
        return _decimal(*divmod(micros, 1000)) + "ms"
    millis = (micros + 500) // 1000
    total_seconds, fraction = divmod(millis, 1000)
    if total_seconds < 60:
        return _decimal(total_seconds, fraction) + "s"
    minutes, whole_seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)
    text = f"{minutes}m{_decimal(whole_seconds, fraction)}s"
    if hours:
        text = f"{hours}h{text}"
    return text


def render_table(rows: list[tuple[str, str, str]]) -> list[str]:
    """Render rows as fixed-width columns.

    Every column except the last is padded to its widest cell plus
    ``COLUMN_PADDING`` spaces.
    """
    widths = [max(len(row[col]) for row in rows) for col in range(2)]
    lines = []
    for name, status, duration in rows:
        line = (
            name.ljust(widths[0] + COLUMN_PADDING)
            + status.ljust(widths[1] + COLUMN_PADDING)
            + duration
        )
        lines.append(line)
    return lines


class JobStatusTracker:
    """Records start time, terminal status and duration per job."""

    def __init__(self, job_names: Iterable[str]) -> None:
        self.statuses = [JobStatus(name=name) for name in job_names]
        self._active: int | None = None
        self._started_at = 0.0

    @property
    def active_index(self) -> int | None:
        """Index of the running job, or None."""
        return self._active

    def start(self, index: int) -> None:
        """Mark the job at ``index`` as running.

        Raises:
            IndexError: If no job exists at ``index``.
            RuntimeError: If another job is still active.
        """
        if self._active is not None:
            raise RuntimeError(
                f"Job '{self.statuses[self._active].name}' is still running"
            )
        if not 0 <= index < len(self.statuses):
            raise IndexError(f"No job at index {index}")
        self._active = index
        self._started_at = time.monotonic()

    def finish(self, status: JobState) -> JobStatus:
        """Record the outcome of the active job.

        Returns:
            The updated status entry.

        Raises:
            RuntimeError: If no job is active.
        """
        if self._active is None:
            raise RuntimeError("No job is running")
        entry = self.statuses[self._active]
        entry.status = status
        entry.duration = format_duration(time.monotonic() - self._started_at)
        self._active = None
        return entry

    @contextmanager
    def track(self, index: int) -> Iterator[JobRun]:
        """Run a block as the job at ``index``.

        The yielded ``JobRun.status`` starts as OK and is recorded when the
        block exits. If an exception escapes while the status is still OK,
        the job is recorded as Failed.
        """
        self.start(index)
        run = JobRun(index=index, name=self.statuses[index].name)
        try:
            yield run
        except BaseException:
            if run.status is JobState.OK:
                run.status = JobState.FAILED
            raise
        finally:
            self.finish(run.status)

    def rows(self) -> list[tuple[str, str, str]]:
        """Table rows including the header and its underline."""
        rows = [("Job", "Status", "Duration"), ("---", "------", "--------")]
        rows.extend((s.name, s.status.value, s.duration) for s in self.statuses)
        return rows

    def report(self, log: logging.Logger | None = None) -> None:
        """Log the status table bracketed by separator lines."""
        log = log or logger
        log.info(SEPARATOR)
        log.info("")
        for line in render_table(self.rows()):
            log.info(line)
        log.info("")
        log.info(SEPARATOR)


__all__ = [
    "JobRun",
    "JobStatus",
    "JobStatusTracker",
    "format_duration",
    "render_table",
]
