"""Merge shard results into a combined report."""

from __future__ import annotations

from typing import TYPE_CHECKING

from isorun.isolation.aggregator import RunSummary

if TYPE_CHECKING:
    from collections.abc import Sequence


def merge_run_summaries(summaries: Sequence[RunSummary]) -> RunSummary:
    """Merge several shard summaries into one.

    Summaries are ordered by shard index and their outcomes concatenated,
    so the failing files read in the same order on every merge. The target
    is kept only when all shards agree on it.
    """
    if not summaries:
        return RunSummary()

    ordered = sorted(summaries, key=lambda s: s.shard_index)
    targets = {s.target for s in ordered}

    merged = RunSummary(
        target=targets.pop() if len(targets) == 1 else "",
        shard_index=0,
        shard_count=len(ordered),
    )
    for summary in ordered:
        merged.outcomes.extend(summary.outcomes)
    return merged
