"""Base class for the test frameworks a child process can drive."""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path


class TestFrameworkAdapter(ABC):
    """Abstract base class for test framework adapters.

    An adapter tells the child bootstrap which callable is the framework's
    run entry point (so it can be disarmed while support modules load) and
    how to run one test file synchronously, now.
    """

    __test__ = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Framework identifier (e.g. ``'pytest'``)."""

    @property
    @abstractmethod
    def module(self) -> str:
        """Importable module that owns the entry point, also used with ``-m``."""

    @property
    def entry_point(self) -> str:
        """Attribute of :attr:`module` that starts a test run."""
        return "main"

    @abstractmethod
    def run_now(self, test_file: Path, args: Sequence[str]) -> int:
        """Run *test_file* in the current process and return an exit status."""

    @abstractmethod
    def get_profile_args(self) -> list[str]:
        """Return the arguments that make the framework report slow tests."""

    def load_entry_owner(self) -> Any:
        """Import and return the module holding :attr:`entry_point`."""
        return importlib.import_module(self.module)

    def get_entry(self) -> Callable[..., Any]:
        """Return the entry point as currently bound on its module."""
        entry: Callable[..., Any] = getattr(self.load_entry_owner(), self.entry_point)
        return entry

    def standalone_command(self, interpreter: str, test_file: str) -> list[str]:
        """Return the argv that runs *test_file* without isorun."""
        return [interpreter, "-m", self.module, test_file]
