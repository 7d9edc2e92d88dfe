"""Lookup of framework adapters by name.

Built-in adapters are registered eagerly; third-party adapters can be
contributed through the ``isorun.adapters`` entry-point group.
"""

from __future__ import annotations

import importlib.metadata
import logging

from isorun.adapters.base import TestFrameworkAdapter
from isorun.adapters.pytest_adapter import PytestAdapter
from isorun.adapters.unittest_adapter import UnittestAdapter

logger = logging.getLogger(__name__)

_ENTRY_POINT_GROUP = "isorun.adapters"


class AdapterRegistry:
    """Registry for discovering and selecting framework adapters."""

    def __init__(self) -> None:
        """Initialize the registry with built-in and entry-point adapters."""
        self._adapters: dict[str, type[TestFrameworkAdapter]] = {}
        for adapter_cls in (PytestAdapter, UnittestAdapter):
            self.register(adapter_cls)
        self._discover_entry_point_adapters()

    def register(self, adapter_cls: type[TestFrameworkAdapter]) -> None:
        """Register an adapter class under its ``name``."""
        name = adapter_cls().name
        self._adapters[name] = adapter_cls
        logger.debug("Registered adapter: %s", name)

    def _discover_entry_point_adapters(self) -> None:
        for ep in importlib.metadata.entry_points(group=_ENTRY_POINT_GROUP):
            try:
                adapter_cls = ep.load()
            except Exception as exc:
                logger.warning("Failed to load adapter entry point %s: %s", ep.name, exc)
                continue
            if isinstance(adapter_cls, type) and issubclass(adapter_cls, TestFrameworkAdapter):
                self.register(adapter_cls)
            else:
                logger.warning("Entry point %s is not a TestFrameworkAdapter", ep.name)

    def names(self) -> list[str]:
        """Return the registered adapter names, sorted."""
        return sorted(self._adapters)

    def get(self, name: str) -> TestFrameworkAdapter:
        """Instantiate the adapter registered as *name*.

        Raises:
            KeyError: If no adapter has that name.
        """
        try:
            adapter_cls = self._adapters[name]
        except KeyError:
            msg = f"Unknown test framework {name!r} (known: {', '.join(self.names())})"
            raise KeyError(msg) from None
        return adapter_cls()


class _RegistrySingleton:
    """Singleton holder for the adapter registry."""

    _instance: AdapterRegistry | None = None

    @classmethod
    def get(cls) -> AdapterRegistry:
        if cls._instance is None:
            cls._instance = AdapterRegistry()
        return cls._instance


def get_registry() -> AdapterRegistry:
    """Return the process-wide adapter registry, creating it on first use."""
    return _RegistrySingleton.get()
