"""Per-file outcomes and the shard summary.

The console lines written here (``^^^ +++``, ``--- All tests completed``,
``Failed in:``) are folded by CI log viewers and must stay byte-for-byte.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from collections.abc import Callable

    from isorun.sharding.splitter import ShardSpec

logger = logging.getLogger(__name__)

FAILURE_MARKER = "^^^ +++"
COMPLETED_BANNER = "--- All tests completed"
FAILED_IN_HEADER = "Failed in:"


@dataclass(frozen=True)
class RunOutcome:
    """Result of one child process."""

    file: Path
    """The test file that was run."""

    succeeded: bool
    """True if the child exited with status 0."""

    returncode: int | None = None
    """Child exit status; negative for signals, None if it never started."""

    duration_ms: float = 0.0
    """Wall-clock time from launch to exit."""


@dataclass
class RunSummary:
    """Ordered outcomes for one target's shard."""

    outcomes: list[RunOutcome] = field(default_factory=list)
    """Outcomes in launch order."""

    target: str = ""
    """Target name the files belong to."""

    shard_index: int = 0
    """Zero-based shard index."""

    shard_count: int = 1
    """Total number of shards."""

    @property
    def failing_files(self) -> list[Path]:
        return [o.file for o in self.outcomes if not o.succeeded]

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return len(self.failing_files)

    @property
    def passed(self) -> int:
        return self.total - self.failed

    @property
    def success(self) -> bool:
        return not self.failing_files

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class ResultAggregator:
    """Collects outcomes as files finish and prints the final report."""

    def __init__(
        self,
        *,
        target: str = "",
        shard: ShardSpec | None = None,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self._summary = RunSummary(
            target=target,
            shard_index=shard.index if shard else 0,
            shard_count=shard.count if shard else 1,
        )
        self._echo = echo
        self._finalized = False

    def record(self, outcome: RunOutcome) -> None:
        """Append *outcome*; a failure is flagged immediately in the log."""
        if self._finalized:
            msg = "cannot record outcomes after finalize()"
            raise RuntimeError(msg)
        self._summary.outcomes.append(outcome)
        if not outcome.succeeded:
            logger.info("%s failed (returncode=%s)", outcome.file, outcome.returncode)
            self._echo(FAILURE_MARKER)
        self._echo("")

    def finalize(self) -> RunSummary:
        """Print the completion banner and the failing files, if any."""
        if self._finalized:
            return self._summary
        self._finalized = True

        self._echo(COMPLETED_BANNER)
        failing = self._summary.failing_files
        if failing:
            self._echo(FAILURE_MARKER)
            self._echo("")
            self._echo(FAILED_IN_HEADER)
            for path in failing:
                self._echo(f"  {path}")
            self._echo("")
        return self._summary
