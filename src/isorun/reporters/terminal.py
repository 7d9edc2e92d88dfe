"""Terminal reporter with rich output formatting.

Everything printed here is decoration for humans. The CI-folded trace
lines are written by the launcher and aggregator, not by this module.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from isorun.isolation.aggregator import RunSummary

console = Console()


_PERFECT_RATE = 100.0
_GOOD_RATE = 80.0
_SECONDS_PER_MINUTE = 60.0
_BAR_WIDTH = 40


def _pass_rate_color(rate: float) -> str:
    """Return a Rich color name for a given pass-rate percentage."""
    if rate >= _PERFECT_RATE:
        return "green"
    if rate >= _GOOD_RATE:
        return "yellow"
    return "red"


def _format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.1f}s"


class CLIReporter:
    """Rich terminal output reporter for isolated test runs."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_file_list(self, files: Sequence[Path]) -> None:
        """Print one test file per line, without markup processing."""
        for path in files:
            self.console.print(str(path), markup=False, highlight=False, soft_wrap=True)

    def print_summary_bar(self, summary: RunSummary) -> None:
        """Print a visual bar showing the passed/failed split for one shard."""
        if summary.total == 0:
            self.console.print("  [dim]No test files executed[/dim]")
            return

        pass_rate = summary.passed / summary.total * 100
        rate_color = _pass_rate_color(pass_rate)
        duration_s = sum(o.duration_ms for o in summary.outcomes) / 1000
        bar = self._build_result_bar(summary.passed, summary.failed)

        self.console.print(
            f"  [bold]{summary.total}[/bold] files  {bar}  "
            f"[bold {rate_color}]{pass_rate:.0f}%[/bold {rate_color}] passed  "
            f"[dim]⏱ {_format_duration(duration_s)}[/dim]"
        )

    def print_target_table(self, summaries: Mapping[str, RunSummary]) -> None:
        """Print one row per target with its shard and file counts."""
        table = Table(title="Isolated runs", title_style="bold cyan")
        table.add_column("Target", style="cyan")
        table.add_column("Shard", justify="right")
        table.add_column("Files", justify="right")
        table.add_column("Passed", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")

        for name, summary in summaries.items():
            table.add_row(
                name,
                f"{summary.shard_index}/{summary.shard_count}",
                str(summary.total),
                str(summary.passed),
                str(summary.failed),
            )
        self.console.print(table)

    def _build_result_bar(self, passed: int, failed: int, width: int = _BAR_WIDTH) -> str:
        """Build a colored bar string proportional to result counts."""
        total = passed + failed
        if total == 0:
            return f"[dim]{'░' * width}[/dim]"

        green = round(passed / total * width)
        red = width - green
        bar = ""
        if green:
            bar += f"[green]{'█' * green}[/green]"
        if red:
            bar += f"[red]{'█' * red}[/red]"
        return bar


# Singleton instance for easy import
reporter = CLIReporter()
