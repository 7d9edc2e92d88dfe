"""Test sharding support for parallel CI workers."""

from isorun.sharding.merger import merge_run_summaries
from isorun.sharding.shard_result import read_shard_result, write_shard_result
from isorun.sharding.splitter import (
    InvalidShardSpec,
    ShardSpec,
    discover_test_files,
    split_into_shards,
)

__all__ = [
    "InvalidShardSpec",
    "ShardSpec",
    "discover_test_files",
    "merge_run_summaries",
    "read_shard_result",
    "split_into_shards",
    "write_shard_result",
]
