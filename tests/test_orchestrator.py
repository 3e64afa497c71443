"""Tests for orchestrator.py module.

Tests build context creation, command composition and sequential job
execution. Most tests mock the subprocess; TestRealProcess runs a shell
script standing in for the container runtime.
"""

import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from gobuild.config import Settings
from gobuild.orchestrator import (
    BuildOrchestrator,
    ContextInitError,
    JobExecutionError,
    create_build_context,
)
from gobuild.scripts import ArtifactWriteError
from gobuild.types import JobState

HOST_ENV = ["PATH=/usr/bin:/bin", "USER=ci"]


@pytest.fixture
def sink() -> logging.Logger:
    return logging.getLogger("tests.orchestrator")


@pytest.fixture
def context(two_job_config, tmp_path):
    """Build context rooted in a temporary working directory."""
    return create_build_context(
        two_job_config, Settings(), work_dir=tmp_path, environ=HOST_ENV
    )


def _messages(caplog, sink):
    return [r.getMessage() for r in caplog.records if r.name == sink.name]


class TestCreateBuildContext:
    """Tests for create_build_context function."""

    def test_creates_temp_folder(self, context, tmp_path):
        """Temp folder is created below the working directory."""
        assert context.temp_folder == tmp_path.resolve() / ".gobuild"
        assert context.temp_folder.is_dir()
        assert context.mount_path == "/var/gobuild"

    def test_status_entries_for_every_job(self, context):
        """Every job has a NotRun entry before execution."""
        assert [s.name for s in context.tracker.statuses] == ["build app", "package"]
        assert all(s.status is JobState.NOT_RUN for s in context.tracker.statuses)

    def test_host_env_parsed(self, context):
        assert context.host_env == {"PATH": "/usr/bin:/bin", "USER": "ci"}

    def test_defaults_to_process_environment(self, two_job_config, tmp_path):
        with patch.dict("os.environ", {"GOBUILD_TEST_MARKER": "yes"}):
            ctx = create_build_context(two_job_config, work_dir=tmp_path)
        assert ctx.host_env["GOBUILD_TEST_MARKER"] == "yes"

    def test_malformed_host_env(self, two_job_config, tmp_path):
        """Malformed host entries fail context creation."""
        with pytest.raises(ContextInitError) as exc_info:
            create_build_context(two_job_config, work_dir=tmp_path, environ=["BROKEN"])
        assert exc_info.value.code == "context_init_error"

    def test_temp_folder_failure(self, two_job_config, tmp_path):
        """A file in place of the temp folder fails context creation."""
        (tmp_path / ".gobuild").write_text("not a folder")
        with pytest.raises(ContextInitError):
            create_build_context(two_job_config, work_dir=tmp_path, environ=HOST_ENV)


class TestComposeRunCommand:
    """Tests for BuildOrchestrator.compose_run_command."""

    def test_command_contract(self, context, two_job_config):
        orchestrator = BuildOrchestrator(context)
        cmd = orchestrator.compose_run_command(two_job_config.jobs[0], 0)
        work = context.work_dir
        assert cmd == [
            "docker",
            "run",
            "-v",
            f"{work}:/var/gobuild",
            "--env-file",
            f"{work}/.gobuild/00-build-app.env",
            "--entrypoint",
            "/var/gobuild/.gobuild/00-build-app.sh",
            "golang:1.22",
        ]

    def test_custom_runtime(self, context, two_job_config):
        orchestrator = BuildOrchestrator(context, runtime="podman")
        cmd = orchestrator.compose_run_command(two_job_config.jobs[1], 1)
        assert cmd[0] == "podman"
        assert cmd[-1] == "alpine:3.19"


class TestExecuteJob:
    """Tests for BuildOrchestrator.execute_job."""

    def test_success_writes_artifacts(self, context, two_job_config, fake_runtime):
        """A zero exit records OK and leaves both artifacts behind."""
        orchestrator = BuildOrchestrator(context)
        orchestrator.execute_job(0, two_job_config.jobs[0])

        status = context.tracker.statuses[0]
        assert status.status is JobState.OK
        assert status.duration != "None"
        script = (context.temp_folder / "00-build-app.sh").read_text()
        assert "echo /# go build ./...\ngo build ./...\n" in script
        env_file = (context.temp_folder / "00-build-app.env").read_bytes()
        assert env_file == b"BAR=1-x\r\nFOO=1\r\n"

    def test_process_gets_resolved_env(self, context, two_job_config, fake_runtime):
        """The runtime process runs with the resolved job environment."""
        BuildOrchestrator(context).execute_job(0, two_job_config.jobs[0])

        args, kwargs = fake_runtime.call_args
        assert args[0][0] == "/usr/bin/docker"
        assert args[0][-1] == "golang:1.22"
        assert kwargs["env"] == {"FOO": "1", "BAR": "1-x"}

    def test_output_redirected_with_prefix(
        self, context, two_job_config, fake_runtime, fake_process, caplog, sink
    ):
        """stdout and stderr lines are logged with the job prefix."""
        caplog.set_level(logging.INFO)
        fake_runtime.return_value = fake_process(
            stdout=b"/# go build ./...\nok\n", stderr=b"warning\npartial"
        )
        BuildOrchestrator(context, log=sink).execute_job(0, two_job_config.jobs[0])

        messages = _messages(caplog, sink)
        assert any(
            m.startswith("Executing container command: docker run ") for m in messages
        )
        assert "DOCKER build app | /# go build ./..." in messages
        assert "DOCKER build app | ok" in messages
        assert "DOCKER build app | warning" in messages
        assert not any("partial" in m for m in messages)

    def test_nonzero_exit(self, context, two_job_config, fake_runtime, fake_process):
        """A nonzero exit raises and records Failed."""
        fake_runtime.return_value = fake_process(returncode=2)
        with pytest.raises(JobExecutionError) as exc_info:
            BuildOrchestrator(context).execute_job(0, two_job_config.jobs[0])

        assert exc_info.value.exit_code == 2
        assert exc_info.value.code == "container_exit"
        assert context.tracker.statuses[0].status is JobState.FAILED

    def test_launch_failure(self, context, two_job_config, fake_runtime):
        """An OSError from Popen is a launch error recorded as Failed."""
        fake_runtime.side_effect = OSError("exec format error")
        with pytest.raises(JobExecutionError) as exc_info:
            BuildOrchestrator(context).execute_job(0, two_job_config.jobs[0])

        assert exc_info.value.code == "launch_error"
        assert exc_info.value.exit_code is None
        assert context.tracker.statuses[0].status is JobState.FAILED

    def test_runtime_not_found(self, context, two_job_config):
        """A missing runtime executable is a launch error."""
        with patch("shutil.which", return_value=None), patch(
            "subprocess.Popen"
        ) as mock_popen:
            with pytest.raises(JobExecutionError, match="not found"):
                BuildOrchestrator(context).execute_job(0, two_job_config.jobs[0])
        mock_popen.assert_not_called()
        assert context.tracker.statuses[0].status is JobState.FAILED

    def test_artifact_failure_skips_launch(self, context, two_job_config, fake_runtime):
        """A write failure records EntryPointCreationError without launching."""
        context.temp_folder.rmdir()
        with pytest.raises(ArtifactWriteError):
            BuildOrchestrator(context).execute_job(0, two_job_config.jobs[0])

        fake_runtime.assert_not_called()
        status = context.tracker.statuses[0]
        assert status.status is JobState.ENTRY_POINT_CREATION_ERROR
        assert status.duration != "None"


class TestExecuteBuild:
    """Tests for BuildOrchestrator.execute_build and report."""

    def test_all_jobs_succeed(self, context, fake_runtime, fake_process, caplog, sink):
        caplog.set_level(logging.INFO)
        fake_runtime.side_effect = [fake_process(), fake_process()]
        BuildOrchestrator(context, log=sink).execute_build()

        assert fake_runtime.call_count == 2
        assert [s.status for s in context.tracker.statuses] == [
            JobState.OK,
            JobState.OK,
        ]
        messages = _messages(caplog, sink)
        assert "Execute job: 'build app'" in messages
        assert messages.count("SUCCESS!") == 2

    def test_first_failure_stops_build(
        self, context, fake_runtime, fake_process, caplog, sink
    ):
        """After the first job fails, the second is never invoked."""
        caplog.set_level(logging.INFO)
        fake_runtime.side_effect = [fake_process(returncode=1), fake_process()]
        orchestrator = BuildOrchestrator(context, log=sink)

        with pytest.raises(JobExecutionError):
            orchestrator.execute_build()
        orchestrator.report()

        assert fake_runtime.call_count == 1
        first, second = context.tracker.statuses
        assert first.status is JobState.FAILED
        assert first.duration != "None"
        assert second.status is JobState.NOT_RUN
        assert second.duration == "None"

        rows = [m.split() for m in _messages(caplog, sink)]
        assert ["build", "app", "Failed", first.duration] in rows
        assert ["package", "NotRun", "None"] in rows
        assert "SUCCESS!" not in _messages(caplog, sink)

    def test_empty_build(self, tmp_path, fake_runtime):
        """A configuration without jobs runs nothing."""
        from gobuild.schema import BuildConfigSchema

        ctx = create_build_context(
            BuildConfigSchema(), work_dir=tmp_path, environ=HOST_ENV
        )
        BuildOrchestrator(ctx).execute_build()
        fake_runtime.assert_not_called()
        assert ctx.tracker.statuses == []


def test_duplicate_names_do_not_collide(tmp_path, fake_runtime, fake_process):
    """Jobs with the same sanitized name get separate artifacts and statuses."""
    from gobuild.schema import BuildConfigSchema, BuildJobSchema

    config = BuildConfigSchema(
        jobs=[
            BuildJobSchema(name="step one", image="a", scripts=["echo 1"]),
            BuildJobSchema(name="step-one", image="b", scripts=["echo 2"]),
        ]
    )
    ctx = create_build_context(config, work_dir=tmp_path, environ=HOST_ENV)
    fake_runtime.side_effect = [fake_process(), fake_process()]
    BuildOrchestrator(ctx).execute_build()

    assert "echo 1" in Path(ctx.temp_folder / "00-step-one.sh").read_text()
    assert "echo 2" in Path(ctx.temp_folder / "01-step-one.sh").read_text()
    assert [s.status for s in ctx.tracker.statuses] == [JobState.OK, JobState.OK]


CHATTY_RUNTIME = """#!/bin/sh
i=0
while [ "$i" -lt 20000 ]; do
    echo "err $i" >&2
    i=$((i + 1))
done
i=0
while [ "$i" -lt 20000 ]; do
    echo "out $i"
    i=$((i + 1))
done
echo "env FOO=$FOO BAR=$BAR"
exit 3
"""


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
class TestRealProcess:
    """Runs a real executable as the container runtime."""

    @pytest.fixture
    def chatty_runtime(self, tmp_path) -> Path:
        """Runtime writing more than a pipe buffer to stderr, then stdout."""
        script = tmp_path / "fake-docker"
        script.write_text(CHATTY_RUNTIME)
        script.chmod(0o755)
        return script

    def test_streams_drained_concurrently(
        self, context, chatty_runtime, caplog, sink
    ):
        """A full stderr pipe does not block reading stdout, or vice versa."""
        caplog.set_level(logging.INFO)
        orchestrator = BuildOrchestrator(
            context, log=sink, runtime=str(chatty_runtime)
        )

        with pytest.raises(JobExecutionError) as exc_info:
            orchestrator.execute_build()

        assert exc_info.value.exit_code == 3
        assert exc_info.value.code == "container_exit"
        messages = _messages(caplog, sink)
        prefix = "DOCKER build app | "
        err = [m for m in messages if m.startswith(prefix + "err ")]
        out = [m for m in messages if m.startswith(prefix + "out ")]
        assert err == [f"{prefix}err {i}" for i in range(20000)]
        assert out == [f"{prefix}out {i}" for i in range(20000)]
        assert f"{prefix}env FOO=1 BAR=1-x" in messages

        first, second = context.tracker.statuses
        assert first.status is JobState.FAILED
        assert second.status is JobState.NOT_RUN
        assert second.duration == "None"
