"""
Process Runner - Run an external binary with bounded output capture
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import NamedTuple

from .errors import OutputTooLargeError, ProcessError

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024  # 10 MiB
_READ_CHUNK_SIZE = 64 * 1024


class ProcessResult(NamedTuple):
    stdout: str
    exit_code: int


class ProcessRunner:
    """Spawn one process per call and capture its stdout"""

    def __init__(self, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES):
        self.max_output_bytes = max_output_bytes

    async def run(self, command: str, args: list[str], cwd: str | Path) -> ProcessResult:
        """Run `command args...` in `cwd`.

        Raises ProcessError on a non-zero exit (or when the process can not be
        started) and OutputTooLargeError when stdout or stderr exceeds the ceiling.
        """
        display = " ".join([command, *args])
        logger.debug("[ProcessRunner] Running %s in %s", display, cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessError(-1, str(e), command=display) from e

        try:
            stdout, stderr = await asyncio.gather(
                self._read_bounded(process.stdout),
                self._read_bounded(process.stderr),
            )
        except OutputTooLargeError:
            logger.warning(
                "[ProcessRunner] Output of %s exceeded %d bytes, killing process",
                display,
                self.max_output_bytes,
            )
            process.kill()
            await process.wait()
            raise

        exit_code = await process.wait()
        if exit_code != 0:
            raise ProcessError(exit_code, _decode(stderr), command=display)

        return ProcessResult(_decode(stdout), exit_code)

    async def _read_bounded(self, stream: asyncio.StreamReader) -> bytes:
        chunks: list[bytes] = []
        size = 0
        while True:
            chunk = await stream.read(_READ_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > self.max_output_bytes:
                raise OutputTooLargeError(self.max_output_bytes)
            chunks.append(chunk)
        return b"".join(chunks)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class GitRunner:
    """Bind a ProcessRunner to the git executable"""

    NOT_A_REPOSITORY_EXIT_CODE = 128

    def __init__(self, runner: ProcessRunner | None = None, executable: str = "git"):
        self.runner = runner or ProcessRunner()
        self.executable = executable

    async def run(self, root: str | Path, *args: str) -> ProcessResult:
        return await self.runner.run(self.executable, list(args), root)

    @classmethod
    def is_not_a_repository(cls, error: ProcessError) -> bool:
        return error.exit_code == cls.NOT_A_REPOSITORY_EXIT_CODE

    @staticmethod
    def reports_not_a_repository(error: ProcessError) -> bool:
        """Exit code 128 is shared with bad revisions, so look at stderr"""
        return "not a git repository" in error.stderr.lower()
