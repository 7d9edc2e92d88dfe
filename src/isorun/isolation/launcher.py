"""Launch one isolated child interpreter per test file."""

from __future__ import annotations

import logging
import os
import shlex
from typing import TYPE_CHECKING

import click

from isorun.adapters.registry import get_registry
from isorun.isolation.aggregator import RunOutcome
from isorun.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from isorun.config import ExecutionOptions

logger = logging.getLogger(__name__)

CHILD_MODULE = "isorun.isolation.child"
TRACE_PREFIX = "--- "


class LaunchFailure(Exception):
    """The child process for a test file could not be started."""

    def __init__(self, file: Path, message: str) -> None:
        super().__init__(message)
        self.file = file


class ChildProcessFailure(Exception):
    """A test file's child process exited nonzero or was killed by a signal."""

    def __init__(self, outcome: RunOutcome) -> None:
        super().__init__(f"{outcome.file} failed with exit status {outcome.returncode}")
        self.outcome = outcome


def interpreter_flags(options: ExecutionOptions) -> list[str]:
    """Interpreter flags shared by the child and reproduction commands."""
    if options.warnings_as_errors:
        flags = ["-W", "error"]
    elif options.strict_warnings:
        flags = ["-W", "default"]
    else:
        flags = []
    flags.extend(options.interpreter_args)
    return flags


def build_child_command(test_file: Path, options: ExecutionOptions) -> list[str]:
    """Return the argv that runs *test_file* through the child bootstrap."""
    command = [options.interpreter, *interpreter_flags(options), "-m", CHILD_MODULE]
    command.extend(["--framework", options.framework])
    for path in options.load_paths:
        command.extend(["--load-path", str(path)])
    for module in options.preload:
        command.extend(["--preload", module])
    command.append("--")
    command.append(str(test_file))
    command.extend(options.test_options)
    return command


def reproduction_command(test_file: Path, options: ExecutionOptions) -> str:
    """Return a shell command that runs *test_file* standalone from the project root."""
    adapter = get_registry().get(options.framework)
    interpreter, *rest = adapter.standalone_command(options.interpreter, str(test_file))
    command = shlex.join([interpreter, *interpreter_flags(options), *rest])
    if not options.load_paths:
        return command
    python_path = os.pathsep.join(os.path.relpath(p, options.cwd) for p in options.load_paths)
    return f"PYTHONPATH={shlex.quote(python_path)} {command}"


async def run_test_file(
    test_file: Path,
    options: ExecutionOptions,
    *,
    echo: Callable[[str], None] = click.echo,
    check: bool = False,
) -> RunOutcome:
    """Run *test_file* in a fresh interpreter and wait for it to exit.

    Writes the ``--- <file>`` trace line and the reproduction command
    before launching.

    Raises:
        LaunchFailure: If the interpreter could not be started.
        ChildProcessFailure: If *check* is set and the child failed.
    """
    echo(f"{TRACE_PREFIX}{test_file}")
    echo(reproduction_command(test_file, options))

    command = build_child_command(test_file, options)
    try:
        result = await run_subprocess(command, cwd=options.cwd, env=options.env)
    except SubprocessError as exc:
        raise LaunchFailure(test_file, str(exc)) from exc

    if result.signal_name:
        logger.warning("%s was terminated by %s", test_file, result.signal_name)

    outcome = RunOutcome(
        file=test_file,
        succeeded=result.success,
        returncode=result.returncode,
        duration_ms=result.duration_ms,
    )
    if check and not outcome.succeeded:
        raise ChildProcessFailure(outcome)
    return outcome
