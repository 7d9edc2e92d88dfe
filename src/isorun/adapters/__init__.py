"""Test framework adapters driven inside isolated child processes."""

from isorun.adapters.base import TestFrameworkAdapter
from isorun.adapters.pytest_adapter import PytestAdapter
from isorun.adapters.registry import AdapterRegistry, get_registry
from isorun.adapters.unittest_adapter import UnittestAdapter

__all__ = [
    "AdapterRegistry",
    "PytestAdapter",
    "TestFrameworkAdapter",
    "UnittestAdapter",
    "get_registry",
]
