"""Tests for the child process bootstrap."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

from click.testing import CliRunner

from isorun.isolation import child
from isorun.isolation.child import prepend_load_paths

if TYPE_CHECKING:
    import pytest


class TestPrependLoadPaths:
    def test_first_listed_path_wins(self) -> None:
        search_path = ["/usr/lib/python"]
        prepend_load_paths(["/proj/test", "/proj/lib", "/proj/support"], search_path)
        assert search_path == ["/proj/test", "/proj/lib", "/proj/support", "/usr/lib/python"]

    def test_existing_entries_are_skipped(self) -> None:
        search_path = ["/proj/lib", "/usr/lib/python"]
        inserted = prepend_load_paths(["/proj/test", "/proj/lib"], search_path)
        assert inserted == ["/proj/test"]
        assert search_path == ["/proj/test", "/proj/lib", "/usr/lib/python"]

    def test_defaults_to_sys_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "path", ["/site"])
        prepend_load_paths(["/proj/test"])
        assert sys.path == ["/proj/test", "/site"]


class TestChildMain:
    def _registry_with(self, adapter: MagicMock) -> MagicMock:
        registry = MagicMock()
        registry.get.return_value = adapter
        return registry

    def test_runs_file_once_and_exits_with_status(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "path", list(sys.path))
        adapter = MagicMock()
        guard = MagicMock()
        guard.trigger.return_value = 4
        monkeypatch.setattr(child, "get_registry", lambda: self._registry_with(adapter))
        guard_cls = MagicMock(return_value=guard)
        monkeypatch.setattr(child, "AutorunGuard", guard_cls)

        result = CliRunner().invoke(
            child.main,
            [
                "--framework",
                "fake",
                "--load-path",
                "/proj/test",
                "--preload",
                "helper",
                "--",
                "tests/test_a.py",
                "-x",
                "--maxfail=1",
            ],
        )

        assert result.exit_code == 4
        guard_cls.assert_called_once_with(adapter)
        guard.preload.assert_called_once_with(("helper",))
        guard.trigger.assert_called_once_with(Path("tests/test_a.py"), ("-x", "--maxfail=1"))
        assert sys.path[0] == "/proj/test"

    def test_unknown_framework_is_usage_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        registry = MagicMock()
        registry.get.side_effect = KeyError("Unknown test framework 'nose'")
        monkeypatch.setattr(child, "get_registry", lambda: registry)

        result = CliRunner().invoke(child.main, ["--framework", "nose", "--", "t.py"])

        assert result.exit_code == 2
        assert "Unknown test framework" in result.output
