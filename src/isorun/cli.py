"""isorun command line interface."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from isorun import __version__
from isorun.config import IsorunConfig, load_config, validate_config
from isorun.isolation.aggregator import FAILED_IN_HEADER, FAILURE_MARKER
from isorun.orchestrator import failing_targets, resolve_target_files, run_targets
from isorun.reporters.terminal import reporter
from isorun.sharding.merger import merge_run_summaries
from isorun.sharding.shard_result import read_shard_result, write_shard_result
from isorun.sharding.splitter import InvalidShardSpec, ShardSpec, split_into_shards
from isorun.utils.ci_context import detect_ci_context

logger = logging.getLogger(__name__)
console = Console()

_DEFAULT_SHARD_OUTPUT = ".isorun/shard-result-{target}-{index}.json"

_PATH_OPTION = click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)


def _configure_logging(*, verbose: bool) -> None:
    """Send log records to stderr so they never interleave with the trace lines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_checked_config(
    path: str, *, shard_index: int | None, shard_count: int | None
) -> IsorunConfig:
    """Load, apply CLI shard overrides, and validate.

    Any problem is a usage error, raised before a single file runs.
    """
    if (shard_index is None) != (shard_count is None):
        raise click.UsageError("--shard-index and --shard-count must be used together.")

    try:
        config = load_config(path)
        if shard_index is not None and shard_count is not None:
            config.shard = ShardSpec(index=shard_index, count=shard_count)
    except InvalidShardSpec as e:
        raise click.UsageError(f"Invalid shard: {e}") from e
    except yaml.YAMLError as e:
        raise click.UsageError(f"Failed to parse configuration: {e}") from e

    errors = validate_config(config)
    if errors:
        raise click.UsageError("Invalid configuration:\n  " + "\n  ".join(errors))
    return config


def _config_to_dict(config: IsorunConfig) -> dict[str, Any]:
    """Convert IsorunConfig to a YAML/JSON friendly dictionary for display."""
    result = asdict(config)
    # The raw section duplicates the parsed fields
    result.pop("raw", None)
    result["root"] = str(config.root)
    return result


def _ci_mode() -> bool:
    ctx = click.get_current_context()
    forced = bool(ctx.obj.get("ci", False)) if ctx.obj else False
    return forced or detect_ci_context().is_ci


def _echo_failing_files(files: list[Path]) -> None:
    click.echo(FAILURE_MARKER)
    click.echo("")
    click.echo(FAILED_IN_HEADER)
    for path in files:
        click.echo(f"  {path}")
    click.echo("")


@click.group()
@click.option(
    "--ci",
    is_flag=True,
    help="CI mode: no decorative output, slow-test profiling on.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug messages to stderr.")
@click.version_option(version=__version__, prog_name="isorun")
@click.pass_context
def cli(ctx: click.Context, *, ci: bool, verbose: bool) -> None:
    """isorun: run each test file in its own interpreter process."""
    ctx.ensure_object(dict)
    ctx.obj["ci"] = ci
    _configure_logging(verbose=verbose)


@cli.command()
@click.argument("targets", nargs=-1)
@_PATH_OPTION
@click.option(
    "--shard-index",
    type=int,
    default=None,
    help="Zero-based shard index (overrides WORKER_JOB_INDEX; requires --shard-count).",
)
@click.option(
    "--shard-count",
    type=int,
    default=None,
    help="Total number of shards (overrides WORKER_JOB_COUNT).",
)
@click.option(
    "--shard-output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write each target's shard result JSON here ({target} and {index} are expanded).",
)
@click.option(
    "--test-option",
    "extra_options",
    multiple=True,
    help="Extra argument forwarded to the test framework (repeatable).",
)
@click.option(
    "--strict-warnings/--no-strict-warnings",
    default=None,
    help="Report every warning in the children (default from config).",
)
@click.option(
    "--warnings-as-errors/--no-warnings-as-errors",
    default=None,
    help="Make warnings fatal in the children (default from config).",
)
def run(**kwargs: Any) -> None:
    """Run every test file of TARGETS in its own process.

    Without TARGETS all configured targets run, one after another. A failing
    target never stops the next one; the exit status is 1 if any file failed.
    """
    targets: tuple[str, ...] = kwargs["targets"]
    path: str = kwargs["path"]
    shard_output: str | None = kwargs.get("shard_output")
    extra_options: tuple[str, ...] = kwargs.get("extra_options", ())
    strict_warnings: bool | None = kwargs.get("strict_warnings")
    warnings_as_errors: bool | None = kwargs.get("warnings_as_errors")

    config = _load_checked_config(
        path, shard_index=kwargs.get("shard_index"), shard_count=kwargs.get("shard_count")
    )
    config.test_options.extend(extra_options)
    if strict_warnings is not None:
        config.strict_warnings = strict_warnings
    if warnings_as_errors is not None:
        config.warnings_as_errors = warnings_as_errors

    target_names = list(targets) or list(config.targets)
    unknown = [name for name in target_names if name not in config.targets]
    if unknown:
        raise click.UsageError(
            f"Unknown target(s): {', '.join(unknown)} "
            f"(configured: {', '.join(config.targets)})"
        )

    ci_mode = _ci_mode()
    if not ci_mode:
        reporter.print_header("isorun run")
        reporter.print_info(f"Targets: {', '.join(target_names)}; shard {config.shard}")

    summaries = asyncio.run(run_targets(config, target_names, ci=ci_mode))

    if shard_output is not None or config.shard.is_sharded:
        template = shard_output or _DEFAULT_SHARD_OUTPUT
        for name, summary in summaries.items():
            output_path = Path(path) / template.format(target=name, index=config.shard.index)
            write_shard_result(summary, output_path)
            logger.info("Shard result written to %s", output_path)

    if not ci_mode:
        reporter.print_target_table(summaries)

    failed = failing_targets(summaries)
    if failed:
        reporter.print_error(f"Errors running {', '.join(failed)}")
        sys.exit(1)

    if not ci_mode:
        reporter.print_success("All test files passed!")


@cli.command("list")
@click.argument("target", required=False)
@_PATH_OPTION
@click.option("--shard-index", type=int, default=None, help="Zero-based shard index.")
@click.option("--shard-count", type=int, default=None, help="Total number of shards.")
def list_files(
    target: str | None, path: str, shard_index: int | None, shard_count: int | None
) -> None:
    """Print the test files this worker would run for TARGET."""
    config = _load_checked_config(path, shard_index=shard_index, shard_count=shard_count)
    name = target or next(iter(config.targets))
    try:
        files = resolve_target_files(config, name)
    except KeyError as e:
        raise click.UsageError(str(e.args[0])) from e
    reporter.print_file_list(split_into_shards(files, config.shard))


@cli.command()
@click.argument(
    "shard_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False),
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to write combined result JSON.",
)
def combine(shard_files: tuple[str, ...], output_path: str | None) -> None:
    """Combine shard results from parallel workers.

    Reads shard result JSON files produced by 'isorun run', lists every
    failing file, and exits 1 if there are any.
    """
    summaries = []
    for sf in shard_files:
        try:
            summary = read_shard_result(Path(sf))
        except (OSError, ValueError, KeyError) as e:
            reporter.print_error(f"Failed to read shard file {sf}: {e}")
            raise click.Abort from e
        summaries.append(summary)
        reporter.print_info(
            f"Loaded shard {summary.shard_index}/{summary.shard_count} "
            f"from {sf} ({summary.total} files)"
        )

    targets = {s.target for s in summaries}
    if len(targets) > 1:
        reporter.print_warning(f"Shards belong to different targets: {', '.join(sorted(targets))}")

    merged = merge_run_summaries(summaries)

    if output_path is not None:
        write_shard_result(merged, Path(output_path))
        reporter.print_info(f"Combined result written to {output_path}")

    reporter.print_summary_bar(merged)

    if not merged.success:
        _echo_failing_files(merged.failing_files)
        sys.exit(1)

    reporter.print_success(f"All {merged.total} test files passed across {len(summaries)} shards!")


@cli.group("config")
def config_group() -> None:
    """Inspect `.isorun.yml` configuration."""


@config_group.command("show")
@_PATH_OPTION
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output as JSON instead of YAML.",
)
def config_show(path: str, *, as_json: bool) -> None:
    """Display the resolved configuration, including the shard from the environment."""
    config = _load_checked_config(path, shard_index=None, shard_count=None)
    config_dict = _config_to_dict(config)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


if __name__ == "__main__":
    cli()
