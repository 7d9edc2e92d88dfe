"""unittest adapter: synchronous single-file runs via ``unittest.main``.

``unittest.main`` accepts file paths relative to the working directory and
converts them to module names, so the child must run from the project root
(the launcher always sets ``cwd`` to it).
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

from isorun.adapters.base import TestFrameworkAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

_PROG = "python -m unittest"
_DURATIONS = "10"
_HAS_DURATIONS = sys.version_info >= (3, 12)


class UnittestAdapter(TestFrameworkAdapter):
    """Standard library unittest adapter."""

    @property
    def name(self) -> str:
        return "unittest"

    @property
    def module(self) -> str:
        return "unittest"

    def run_now(self, test_file: Path, args: Sequence[str]) -> int:
        argv = [_PROG, *args, str(test_file)]
        logger.debug("unittest.main(argv=%s)", argv)
        program = self.get_entry()(module=None, argv=argv, exit=False)
        return 0 if program.result.wasSuccessful() else 1

    def get_profile_args(self) -> list[str]:
        if not _HAS_DURATIONS:
            logger.debug("unittest --durations needs Python 3.12+, profiling skipped")
            return []
        return ["--durations", _DURATIONS]
