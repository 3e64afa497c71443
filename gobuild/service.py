"""Build run service.

Ties configuration loading, context creation and orchestration together
into a single call used by the CLI. All output goes to the given logger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from gobuild.config import Settings
from gobuild.io import ConfigParseError, ConfigReadError, load_build_config
from gobuild.orchestrator import (
    BuildOrchestrator,
    ContextInitError,
    JobExecutionError,
    create_build_context,
)
from gobuild.scripts import ArtifactWriteError
from gobuild.status import JobStatus

logger = logging.getLogger(__name__)


@dataclass
class BuildRunResult:
    """Outcome of a build run.

    Attributes:
        success: True if every job succeeded.
        error: Message of the error that ended the run, if any.
        statuses: Final status of every job (empty if no job could start).
    """

    success: bool
    error: str | None = None
    statuses: list[JobStatus] = field(default_factory=list)


def run_build_file(
    config_file: Path | None = None,
    settings: Settings | None = None,
    log: logging.Logger | None = None,
    work_dir: Path | None = None,
) -> BuildRunResult:
    """Load a build configuration and execute all its jobs.

    Startup failures (read, parse, context creation) are logged and end
    the run before any job starts. Job failures stop the remaining jobs;
    the status report is logged in every case once the context exists.

    Args:
        config_file: Configuration path (defaults to settings.config_file).
        settings: Application settings (defaults to a fresh Settings()).
        log: Logging sink (defaults to this module's logger).
        work_dir: Working directory (defaults to the current directory).

    Returns:
        BuildRunResult describing the run.
    """
    settings = settings or Settings()
    log = log or logger
    config_file = config_file or settings.config_file

    log.info("Reading config file from %s", config_file)
    try:
        config = load_build_config(config_file)
    except (ConfigReadError, ConfigParseError) as e:
        log.error("ERROR: %s", e)
        return BuildRunResult(success=False, error=str(e))
    log.debug("Build config: %s", config.model_dump())

    try:
        context = create_build_context(config, settings, work_dir=work_dir)
    except ContextInitError as e:
        log.error("ERROR: %s", e)
        return BuildRunResult(success=False, error=str(e))

    orchestrator = BuildOrchestrator(
        context, log=log, runtime=settings.container_runtime
    )
    error: str | None = None
    log.info("Starting build execution")
    try:
        orchestrator.execute_build()
    except (ArtifactWriteError, JobExecutionError) as e:
        error = str(e)
        log.error(
            "ERROR: Execution failed for build configuration %s: %s", config_file, e
        )
    finally:
        orchestrator.report()

    return BuildRunResult(
        success=error is None,
        error=error,
        statuses=list(context.tracker.statuses),
    )


__all__ = ["BuildRunResult", "run_build_file"]
