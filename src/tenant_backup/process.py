"""External process runner.

Runs a binary with an argument vector (never through a shell), optionally
feeding stdin from a file and redirecting stdout to a file, and bounds the
run with a timeout.  Used by the method detector and the external
exporter/restorer.

Usage:
    from tenant_backup.process import run_process

    result = await run_process(["mysqldump", "--version"], timeout=10)
    if result.ok:
        print(result.stdout)
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tenant_backup.errors import ProcessTimeoutError

logger = logging.getLogger(__name__)

# Exit code reported when the binary cannot be executed at all
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured streams of a finished process.

    ``stdout`` is empty when stdout was redirected to a file.
    """

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner(Protocol):
    """Callable signature shared by ``run_process`` and test fakes."""

    async def __call__(
        self,
        argv: list[str],
        *,
        stdin_path: Path | None = None,
        stdout_path: Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        ...


async def run_process(
    argv: list[str],
    *,
    stdin_path: Path | None = None,
    stdout_path: Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> ProcessResult:
    """Run ``argv`` as a child process and wait for it.

    Args:
        argv: Binary followed by its arguments.
        stdin_path: File streamed to the child's stdin.
        stdout_path: File receiving the child's stdout (truncated first).
        env: Extra environment variables merged over ``os.environ``.
        timeout: Seconds before the child is killed.  ``None`` waits forever.

    Returns:
        ProcessResult.  A binary that cannot be executed yields
        ``returncode=127`` with the OS error as stderr.

    Raises:
        ProcessTimeoutError: If the child does not finish within ``timeout``.
    """
    child_env = {**os.environ, **env} if env else None

    stdin_file = open(stdin_path, "rb") if stdin_path is not None else None
    stdout_file = open(stdout_path, "wb") if stdout_path is not None else None
    try:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=stdin_file if stdin_file is not None else asyncio.subprocess.DEVNULL,
                stdout=stdout_file if stdout_file is not None else asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=child_env,
            )
        except OSError as e:
            logger.debug("Cannot execute %s: %s", argv[0], e)
            return ProcessResult(returncode=EXIT_NOT_FOUND, stderr=str(e))

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ProcessTimeoutError(argv[0], timeout or 0.0) from None
    finally:
        if stdin_file is not None:
            stdin_file.close()
        if stdout_file is not None:
            stdout_file.close()

    return ProcessResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=(out or b"").decode("utf-8", errors="replace"),
        stderr=(err or b"").decode("utf-8", errors="replace"),
    )
