"""Line-buffered redirection of subprocess output into the log.

A container's stdout and stderr arrive as arbitrary byte chunks. The
redirector buffers them and emits one log record per complete line, tagged
with a per-job prefix so interleaved output can be attributed afterwards.
"""

from __future__ import annotations

import logging
from typing import BinaryIO

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096


class LogRedirector:
    """File-like sink that turns a byte stream into log records.

    Attributes:
        prefix: Text prepended to every emitted line.
        logger: Logger that receives one INFO record per line.
    """

    def __init__(self, prefix: str = "", log: logging.Logger | None = None) -> None:
        self.prefix = prefix
        self.logger = log or logger
        self._buffer = bytearray()

    @classmethod
    def for_job(cls, job_name: str, log: logging.Logger | None = None) -> LogRedirector:
        """Create a redirector using the container output prefix for a job."""
        return cls(prefix=f"DOCKER {job_name} | ", log=log)

    @property
    def pending(self) -> bytes:
        """Bytes received after the last newline."""
        return bytes(self._buffer)

    def write(self, data: bytes) -> int:
        """Buffer ``data`` and log every completed line.

        Returns:
            Number of bytes consumed (always ``len(data)``).
        """
        self._buffer.extend(data)
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            self.logger.info(
                "%s%s", self.prefix, line.decode("utf-8", errors="replace")
            )
        return len(data)

    def close(self) -> None:
        """Discard any unterminated trailing line."""
        self._buffer.clear()


def pump(
    stream: BinaryIO,
    redirector: LogRedirector,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Drain ``stream`` into ``redirector`` until EOF.

    Intended to run on its own thread, one per subprocess output pipe.
    """
    try:
        read = getattr(stream, "read1", stream.read)
        while True:
            chunk = read(chunk_size)
            if not chunk:
                break
            redirector.write(chunk)
    finally:
        redirector.close()


__all__ = ["DEFAULT_CHUNK_SIZE", "LogRedirector", "pump"]
