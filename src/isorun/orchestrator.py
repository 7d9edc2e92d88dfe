"""Sequential, per-file isolated execution of one shard.

Files in a shard run strictly one at a time; parallelism comes from running
several workers, each on its own shard.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import click

from isorun.isolation.aggregator import ResultAggregator, RunOutcome
from isorun.isolation.launcher import LaunchFailure, run_test_file
from isorun.sharding.splitter import ShardSpec, discover_test_files, split_into_shards

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from isorun.config import ExecutionOptions, IsorunConfig
    from isorun.isolation.aggregator import RunSummary

logger = logging.getLogger(__name__)


async def run_shard(
    files: Sequence[Path],
    options: ExecutionOptions,
    shard: ShardSpec | None = None,
    *,
    target: str = "",
    echo: Callable[[str], None] = click.echo,
) -> RunSummary:
    """Run this worker's share of *files*, each in its own process.

    A file whose process cannot be started is recorded as failed and the
    run moves on to the next file.
    """
    spec = shard or ShardSpec()
    selected = split_into_shards(files, spec)
    logger.info(
        "Shard %s: running %d of %d test files%s",
        spec,
        len(selected),
        len(files),
        f" for {target}" if target else "",
    )

    aggregator = ResultAggregator(target=target, shard=spec, echo=echo)
    for test_file in selected:
        try:
            outcome = await run_test_file(test_file, options, echo=echo)
        except LaunchFailure as exc:
            logger.error("Could not launch %s: %s", test_file, exc)
            outcome = RunOutcome(file=test_file, succeeded=False)
        aggregator.record(outcome)

    return aggregator.finalize()


def resolve_target_files(config: IsorunConfig, target_name: str) -> list[Path]:
    """Discover the full (unsharded) file list for *target_name*."""
    target = config.get_target(target_name)
    return discover_test_files(config.root, target.include, target.exclude, target.also_include)


async def run_targets(
    config: IsorunConfig,
    target_names: Sequence[str],
    *,
    ci: bool = False,
    echo: Callable[[str], None] = click.echo,
) -> dict[str, RunSummary]:
    """Run each target's shard in turn, never stopping at a failing target."""
    summaries: dict[str, RunSummary] = {}
    for name in target_names:
        target = config.get_target(name)
        files = resolve_target_files(config, name)
        options = config.execution_options(target, ci=ci)
        summaries[name] = await run_shard(files, options, config.shard, target=name, echo=echo)
    return summaries


def failing_targets(summaries: dict[str, RunSummary]) -> list[str]:
    """Names of targets with at least one failing file, in run order."""
    return [name for name, summary in summaries.items() if not summary.success]
