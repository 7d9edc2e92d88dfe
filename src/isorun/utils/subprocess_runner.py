"""Subprocess runner for child test processes.

Children inherit the parent's stdout and stderr so their output streams
live into the CI log; only the exit status comes back.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process (negative signal number if it was killed)."""

    success: bool
    """True if returncode is 0."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""

    @property
    def signal_name(self) -> str | None:
        """Name of the terminating signal, if the process died from one."""
        if self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode).name
        except ValueError:
            return f"signal {-self.returncode}"


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> SubprocessResult:
    """Execute a command and wait for it to exit.

    Args:
        command: Command and arguments as a sequence.
        cwd: Working directory for the subprocess. Defaults to current directory.
        env: Environment variables to set. Merged over the current environment.

    Returns:
        SubprocessResult with exit code and duration.

    Raises:
        SubprocessError: If the process could not be started.
        ValueError: If command is empty or the working directory is missing.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None

    logger.debug("Running subprocess: %s (cwd=%s)", " ".join(command), work_dir)

    start_time = time.perf_counter()
    try:
        process = await asyncio.create_subprocess_exec(*command, cwd=work_dir, env=full_env)
    except OSError as exc:
        logger.error("Could not start %s: %s", command[0], exc)
        raise SubprocessError(f"Could not start {command[0]}: {exc}") from exc

    returncode = await process.wait()
    duration_ms = (time.perf_counter() - start_time) * 1000

    result = SubprocessResult(
        returncode=returncode,
        success=returncode == 0,
        duration_ms=duration_ms,
    )
    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
        returncode,
        duration_ms,
        result.success,
    )
    return result


class SubprocessError(Exception):
    """Exception raised when a subprocess cannot be started."""
