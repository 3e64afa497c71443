"""Shared fixtures for gobuild tests."""

import io
from unittest.mock import patch

import pytest

from gobuild.schema import BuildConfigSchema, BuildJobSchema


class FakeProcess:
    """Stand-in for subprocess.Popen with canned output and exit code."""

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
        self.stdout = io.BytesIO(stdout)
        self.stderr = io.BytesIO(stderr)
        self.returncode = returncode

    def wait(self) -> int:
        return self.returncode

    def __enter__(self) -> "FakeProcess":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stdout.close()
        self.stderr.close()


@pytest.fixture
def two_job_config() -> BuildConfigSchema:
    """Configuration with a build job followed by a package job."""
    return BuildConfigSchema(
        env={"FOO": "1"},
        jobs=[
            BuildJobSchema(
                name="build app",
                image="golang:1.22",
                scripts=["go build ./..."],
                env={"BAR": "${FOO}-x"},
            ),
            BuildJobSchema(
                name="package",
                image="alpine:3.19",
                scripts=["tar czf app.tgz bin"],
            ),
        ],
    )


@pytest.fixture
def fake_runtime():
    """Patch runtime lookup and Popen; yields the Popen mock.

    Set ``mock.side_effect`` to a list of FakeProcess instances.
    """
    with (
        patch("shutil.which", return_value="/usr/bin/docker"),
        patch("subprocess.Popen") as mock_popen,
    ):
        mock_popen.return_value = FakeProcess()
        yield mock_popen


@pytest.fixture
def fake_process():
    """The FakeProcess class, for building canned container results."""
    return FakeProcess
