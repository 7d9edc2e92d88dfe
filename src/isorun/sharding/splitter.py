"""Test file discovery and shard splitting."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class InvalidShardSpec(ValueError):
    """Raised when a shard index/count pair cannot describe a shard."""


@dataclass(frozen=True)
class ShardSpec:
    """One worker's position in a parallel CI job."""

    index: int = 0
    """Zero-based index of this worker."""

    count: int = 1
    """Total number of workers."""

    def __post_init__(self) -> None:
        if self.count < 1:
            msg = f"shard count must be >= 1, got {self.count}"
            raise InvalidShardSpec(msg)
        if self.index < 0 or self.index >= self.count:
            msg = f"shard index must be in [0, {self.count}), got {self.index}"
            raise InvalidShardSpec(msg)

    @property
    def is_sharded(self) -> bool:
        return self.count > 1

    def __str__(self) -> str:
        return f"{self.index}/{self.count}"


def _glob_files(project_path: Path, patterns: Iterable[str]) -> set[Path]:
    files: set[Path] = set()
    for pattern in patterns:
        files.update(
            match.relative_to(project_path)
            for match in project_path.glob(pattern)
            if match.is_file()
        )
    return files


def discover_test_files(
    project_path: Path,
    include: Iterable[str],
    exclude: Iterable[str] = (),
    also_include: Iterable[str] = (),
) -> list[Path]:
    """Discover test files matching the given glob patterns.

    Args:
        project_path: Root of the project.
        include: Glob patterns, relative to *project_path*, selecting test files.
        exclude: ``fnmatch`` patterns; an *include* match matching any of them
            is dropped.
        also_include: Glob patterns added after exclusion, e.g. the test
            files of one specific adapter.

    Returns:
        Sorted list of unique test file paths (relative to project_path).
    """
    excluded = list(exclude)
    files = {
        f
        for f in _glob_files(project_path, include)
        if not any(fnmatch.fnmatch(f.as_posix(), ex) for ex in excluded)
    }
    files.update(_glob_files(project_path, also_include))
    return sorted(files)


def split_into_shards(files: Sequence[Path], spec: ShardSpec) -> list[Path]:
    """Select this worker's files using stride assignment.

    The list is sorted first so workers started independently agree on the
    ordering. It is then cut into chunks of ``spec.count`` files and the
    file at ``spec.index`` is taken from each chunk; the last chunk may be
    short and contributes nothing to the higher indices.

    Args:
        files: All test files for the current target.
        spec: This worker's shard.

    Returns:
        Subset of files assigned to this shard, in path order.

    Raises:
        InvalidShardSpec: If *spec* is not a valid shard (only reachable
            if ``ShardSpec`` validation was bypassed).
    """
    if spec.count < 1 or not 0 <= spec.index < spec.count:
        msg = f"invalid shard {spec.index}/{spec.count}"
        raise InvalidShardSpec(msg)

    ordered = sorted(files)
    return [f for i, f in enumerate(ordered) if i % spec.count == spec.index]
