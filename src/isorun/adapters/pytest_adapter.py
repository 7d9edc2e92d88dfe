"""pytest adapter: synchronous single-file runs via ``pytest.main``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from isorun.adapters.base import TestFrameworkAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

_DURATIONS = 10
# pytest.ExitCode.NO_TESTS_COLLECTED
_NO_TESTS_COLLECTED = 5


class PytestAdapter(TestFrameworkAdapter):
    """pytest test framework adapter."""

    @property
    def name(self) -> str:
        return "pytest"

    @property
    def module(self) -> str:
        return "pytest"

    def run_now(self, test_file: Path, args: Sequence[str]) -> int:
        """Run *test_file*; a file whose tests were all filtered out passes."""
        argv = [str(test_file), *args]
        logger.debug("pytest.main(%s)", argv)
        status = int(self.get_entry()(argv))
        if status == _NO_TESTS_COLLECTED:
            logger.debug("No tests selected in %s", test_file)
            return 0
        return status

    def get_profile_args(self) -> list[str]:
        return [f"--durations={_DURATIONS}"]
