"""Shard result serialization for inter-job artifact exchange."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from isorun.isolation.aggregator import RunOutcome, RunSummary

if TYPE_CHECKING:
    from collections.abc import Mapping


def write_shard_result(summary: RunSummary, output_path: Path) -> None:
    """Serialize and write a shard summary to a JSON file."""
    data = _serialize_summary(summary)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def read_shard_result(path: Path) -> RunSummary:
    """Read a shard result JSON file written by :func:`write_shard_result`."""
    data = json.loads(path.read_text(encoding="utf-8"))
    return _deserialize_summary(data)


def _serialize_summary(summary: RunSummary) -> dict[str, Any]:
    """Convert a RunSummary to a JSON-serializable dict."""
    return {
        "target": summary.target,
        "shard_index": summary.shard_index,
        "shard_count": summary.shard_count,
        "passed": summary.passed,
        "failed": summary.failed,
        "exit_code": summary.exit_code,
        "outcomes": [
            {
                "file": outcome.file.as_posix(),
                "succeeded": outcome.succeeded,
                "returncode": outcome.returncode,
                "duration_ms": outcome.duration_ms,
            }
            for outcome in summary.outcomes
        ],
    }


def _deserialize_summary(data: Mapping[str, Any]) -> RunSummary:
    """Rebuild a RunSummary; derived counts are recomputed, not trusted."""
    outcomes = [
        RunOutcome(
            file=Path(item["file"]),
            succeeded=bool(item["succeeded"]),
            returncode=item.get("returncode"),
            duration_ms=float(item.get("duration_ms", 0.0)),
        )
        for item in data.get("outcomes", [])
    ]
    return RunSummary(
        outcomes=outcomes,
        target=str(data.get("target", "")),
        shard_index=int(data.get("shard_index", 0)),
        shard_count=int(data.get("shard_count", 1)),
    )
