"""Per-file process isolation: launching, autorun control and aggregation."""

from isorun.isolation.aggregator import ResultAggregator, RunOutcome, RunSummary
from isorun.isolation.autorun import AutorunGuard
from isorun.isolation.launcher import (
    ChildProcessFailure,
    LaunchFailure,
    build_child_command,
    reproduction_command,
    run_test_file,
)

__all__ = [
    "AutorunGuard",
    "ChildProcessFailure",
    "LaunchFailure",
    "ResultAggregator",
    "RunOutcome",
    "RunSummary",
    "build_child_command",
    "reproduction_command",
    "run_test_file",
]
