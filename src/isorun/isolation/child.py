"""Child process bootstrap: ``python -m isorun.isolation.child``.

Runs inside the freshly started interpreter for one test file. It puts the
configured load paths on ``sys.path``, preloads support modules with the
framework's autorun disarmed, then triggers a single run of the file and
exits with its status.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from isorun.adapters.registry import get_registry
from isorun.isolation.autorun import AutorunGuard

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def prepend_load_paths(paths: Sequence[str], search_path: list[str] | None = None) -> list[str]:
    """Prepend *paths* to *search_path* (``sys.path`` by default).

    Paths are inserted in reverse so the first one ends up first on the
    search path. Entries already present are left where they are.

    Returns:
        The paths that were actually inserted, in insertion order.
    """
    target = sys.path if search_path is None else search_path
    inserted: list[str] = []
    for path in reversed(paths):
        if path in target:
            continue
        target.insert(0, path)
        inserted.append(path)
    return inserted


@click.command(context_settings={"ignore_unknown_options": True})
@click.option("--framework", default="pytest", show_default=True, help="Test framework adapter.")
@click.option(
    "--load-path",
    "load_paths",
    multiple=True,
    help="Directory to put on sys.path (repeatable, first wins).",
)
@click.option(
    "--preload",
    "preload",
    multiple=True,
    help="Module to import before the run, with autorun disarmed (repeatable).",
)
@click.argument("test_file", type=click.Path(dir_okay=False))
@click.argument("test_args", nargs=-1, type=click.UNPROCESSED)
def main(
    framework: str,
    load_paths: tuple[str, ...],
    preload: tuple[str, ...],
    test_file: str,
    test_args: tuple[str, ...],
) -> None:
    """Run TEST_FILE once under FRAMEWORK and exit with its status."""
    prepend_load_paths(load_paths)

    try:
        adapter = get_registry().get(framework)
    except KeyError as e:
        raise click.UsageError(str(e.args[0])) from e

    guard = AutorunGuard(adapter)
    guard.preload(preload)
    status = guard.trigger(Path(test_file), test_args)
    sys.exit(status)


if __name__ == "__main__":
    main()
