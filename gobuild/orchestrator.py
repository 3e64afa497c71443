"""Sequential execution of build jobs in containers.

This module handles:
- Creating the per-run build context (working dir, temp folder, host env)
- Composing the container runtime command for a job
- Running the container and streaming its output into the log
- Recording each job's outcome and stopping at the first failure

Job lifecycle: Pending -> Running -> Succeeded | EntryPointFailed |
ExecutionFailed. Any terminal state other than Succeeded aborts the
remaining jobs.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from gobuild.config import Settings
from gobuild.environment import MalformedEnvEntryError, env_to_map, resolve_job_env
from gobuild.logwriter import LogRedirector, pump
from gobuild.schema import BuildConfigSchema, BuildJobSchema
from gobuild.scripts import (
    ArtifactWriteError,
    entry_point_name,
    env_file_name,
    write_entry_point,
    write_env_file,
)
from gobuild.status import SEPARATOR, JobStatusTracker
from gobuild.types import JobState

logger = logging.getLogger(__name__)


class ContextInitError(Exception):
    """Raised when the build context cannot be created."""

    def __init__(self, message: str, code: str = "context_init_error") -> None:
        super().__init__(message)
        self.code = code


class JobExecutionError(Exception):
    """Raised when a job's container cannot be launched or exits nonzero.

    Attributes:
        job: Name of the failed job.
        exit_code: Container runtime exit code, None if it never started.
        code: "launch_error" or "container_exit".
    """

    def __init__(
        self,
        message: str,
        job: str,
        exit_code: int | None = None,
        code: str = "container_exit",
    ) -> None:
        super().__init__(message)
        self.job = job
        self.exit_code = exit_code
        self.code = code


@dataclass
class BuildContext:
    """State of one build run.

    Attributes:
        config: Configuration being executed.
        work_dir: Host directory mounted into every container.
        temp_folder_name: Name of the generated-artifact folder in work_dir.
        temp_folder: Absolute path of that folder.
        mount_path: In-container path of work_dir.
        host_env: Environment of the host process.
        tracker: Live status of every job.
    """

    config: BuildConfigSchema
    work_dir: Path
    temp_folder_name: str
    temp_folder: Path
    mount_path: str
    host_env: dict[str, str]
    tracker: JobStatusTracker


def create_build_context(
    config: BuildConfigSchema,
    settings: Settings | None = None,
    work_dir: Path | None = None,
    environ: Iterable[str] | None = None,
) -> BuildContext:
    """Create the build context and its temp folder.

    Args:
        config: Loaded build configuration.
        settings: Application settings (defaults to a fresh Settings()).
        work_dir: Working directory (defaults to the current directory).
        environ: Host environment as ``KEY=VALUE`` entries
            (defaults to the current process environment).

    Returns:
        BuildContext with a NotRun status entry for every job.

    Raises:
        ContextInitError: If the host environment is malformed or the
            temp folder cannot be created.
    """
    settings = settings or Settings()
    if environ is None:
        environ = [f"{key}={value}" for key, value in os.environ.items()]

    try:
        work_dir = (work_dir or Path.cwd()).resolve()
        host_env = env_to_map(environ)
    except (OSError, MalformedEnvEntryError) as e:
        raise ContextInitError(f"Could not create build context: {e}") from e

    temp_folder = work_dir / settings.temp_folder_name
    try:
        temp_folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ContextInitError(
            f"Could not create temp folder {temp_folder}: {e}"
        ) from e

    return BuildContext(
        config=config,
        work_dir=work_dir,
        temp_folder_name=settings.temp_folder_name,
        temp_folder=temp_folder,
        mount_path=settings.mount_path,
        host_env=host_env,
        tracker=JobStatusTracker(job.name for job in config.jobs),
    )


class BuildOrchestrator:
    """Runs the jobs of a build context one at a time.

    The logger is the sink for all orchestration output, including the
    redirected container output and the final status report.
    """

    def __init__(
        self,
        context: BuildContext,
        log: logging.Logger | None = None,
        runtime: str = "docker",
    ) -> None:
        self.context = context
        self.logger = log or logger
        self.runtime = runtime

    def compose_run_command(self, job: BuildJobSchema, index: int) -> list[str]:
        """Compose the container runtime command for a job."""
        ctx = self.context
        return [
            self.runtime,
            "run",
            # share volume with build folder
            "-v",
            f"{ctx.work_dir}:{ctx.mount_path}",
            "--env-file",
            f"{ctx.work_dir}/{ctx.temp_folder_name}/{env_file_name(index, job.name)}",
            "--entrypoint",
            f"{ctx.mount_path}/{ctx.temp_folder_name}/{entry_point_name(index, job.name)}",
            job.image,
        ]

    def resolve_env(self, job: BuildJobSchema) -> dict[str, str]:
        """Final environment of a job (host < build < job)."""
        return resolve_job_env(
            self.context.config.env, job.env, self.context.host_env
        )

    def execute_job(self, index: int, job: BuildJobSchema) -> None:
        """Run a single job and record its status.

        Raises:
            ArtifactWriteError: If the entry point or env file cannot be
                written (status EntryPointCreationError).
            JobExecutionError: If the container cannot be launched or
                exits nonzero (status Failed).
        """
        ctx = self.context
        with ctx.tracker.track(index) as run:
            env = self.resolve_env(job)
            try:
                write_entry_point(job, index, ctx.mount_path, ctx.temp_folder)
                write_env_file(job, index, env, ctx.temp_folder)
            except ArtifactWriteError:
                run.status = JobState.ENTRY_POINT_CREATION_ERROR
                raise

            cmd = self.compose_run_command(job, index)
            self.logger.info("Executing container command: %s", shlex.join(cmd))
            self._run_container(job, index, cmd, env)

    def _run_container(
        self,
        job: BuildJobSchema,
        index: int,
        cmd: list[str],
        env: dict[str, str],
    ) -> None:
        executable = shutil.which(cmd[0], path=self.context.host_env.get("PATH"))
        if executable is None:
            raise JobExecutionError(
                f"Container runtime not found: {cmd[0]}",
                job=job.name,
                code="launch_error",
            )

        try:
            proc = subprocess.Popen(
                [executable, *cmd[1:]],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise JobExecutionError(
                f"Failed to launch {cmd[0]}: {e}",
                job=job.name,
                code="launch_error",
            ) from e

        with proc:
            pumps = [
                threading.Thread(
                    target=pump,
                    args=(stream, LogRedirector.for_job(job.name, self.logger)),
                    name=f"gobuild-{index}-{label}",
                    daemon=True,
                )
                for label, stream in (("stdout", proc.stdout), ("stderr", proc.stderr))
            ]
            for thread in pumps:
                thread.start()
            for thread in pumps:
                thread.join()
            exit_code = proc.wait()

        if exit_code != 0:
            raise JobExecutionError(
                f"Job '{job.name}' failed with exit code {exit_code}",
                job=job.name,
                exit_code=exit_code,
            )

    def execute_build(self) -> None:
        """Run all jobs in order, stopping at the first failure.

        Raises:
            ArtifactWriteError: See ``execute_job``.
            JobExecutionError: See ``execute_job``.
        """
        for index, job in enumerate(self.context.config.jobs):
            self.logger.info(SEPARATOR)
            self.logger.info("Execute job: '%s'", job.name)
            self.logger.info("")
            try:
                self.execute_job(index, job)
            finally:
                self.logger.info("")
            self.logger.info("SUCCESS!")

    def report(self) -> None:
        """Log the status table for every job."""
        self.context.tracker.report(self.logger)


__all__ = [
    "BuildContext",
    "BuildOrchestrator",
    "ContextInitError",
    "JobExecutionError",
    "create_build_context",
]
