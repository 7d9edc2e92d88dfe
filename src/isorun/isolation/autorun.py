"""Single-shot run control for the test framework inside a child process.

Support modules (a shared ``helper`` that every test file imports, for
example) may try to start the framework on their own: calling its entry
point at import time, or registering it with :mod:`atexit` so it runs when
the interpreter shuts down. The child wants exactly one run, triggered by
itself, immediately before the target file is loaded.

:class:`AutorunGuard` disarms the entry point while support modules are
preloaded, restores it afterwards, and then triggers the run once.
"""

from __future__ import annotations

import atexit
import contextlib
import importlib
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from pathlib import Path

    from isorun.adapters.base import TestFrameworkAdapter

logger = logging.getLogger(__name__)


class AutorunGuard:
    """Arm/disarm wrapper around one adapter's run entry point."""

    def __init__(self, adapter: TestFrameworkAdapter) -> None:
        self._adapter = adapter
        self._triggered = False
        self.suppressed_calls = 0
        """Entry point calls swallowed while disarmed."""
        self.suppressed_exit_hooks = 0
        """``atexit`` registrations of the entry point that were dropped."""

    @property
    def triggered(self) -> bool:
        return self._triggered

    @contextlib.contextmanager
    def disarmed(self) -> Iterator[None]:
        """Replace the entry point with a no-op and drop exit-time registrations of it."""
        owner = self._adapter.load_entry_owner()
        attr = self._adapter.entry_point
        original = getattr(owner, attr)
        real_register = atexit.register

        def _noop(*_args: Any, **_kwargs: Any) -> None:
            self.suppressed_calls += 1
            logger.debug("Suppressed %s.%s call during preload", self._adapter.module, attr)

        def _register(func: Any, *args: Any, **kwargs: Any) -> Any:
            if func is original or func is _noop:
                self.suppressed_exit_hooks += 1
                logger.debug("Dropped exit-time %s.%s registration", self._adapter.module, attr)
                return func
            return real_register(func, *args, **kwargs)

        setattr(owner, attr, _noop)
        atexit.register = _register  # type: ignore[assignment]
        try:
            yield
        finally:
            atexit.register = real_register  # type: ignore[assignment]
            setattr(owner, attr, original)

    def preload(self, modules: Sequence[str]) -> None:
        """Import *modules* in order with the entry point disarmed."""
        if not modules:
            return
        with self.disarmed():
            for name in modules:
                logger.debug("Preloading %s", name)
                importlib.import_module(name)

    def trigger(self, test_file: Path, args: Sequence[str]) -> int:
        """Run *test_file* through the restored entry point, exactly once.

        Raises:
            RuntimeError: If the run was already triggered.
        """
        if self._triggered:
            msg = f"{self._adapter.name} run already triggered"
            raise RuntimeError(msg)
        self._triggered = True
        return self._adapter.run_now(test_file, args)
