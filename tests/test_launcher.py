"""Tests for the per-file process launcher."""

from __future__ import annotations

import shlex
import sys
from pathlib import Path

import pytest

from isorun.adapters.unittest_adapter import UnittestAdapter
from isorun.config import ExecutionOptions, IsorunConfig, TargetConfig
from isorun.isolation.launcher import (
    CHILD_MODULE,
    ChildProcessFailure,
    LaunchFailure,
    build_child_command,
    interpreter_flags,
    reproduction_command,
    run_test_file,
)

_QUIET = ("-q", "-p", "no:cacheprovider")


def _write(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return Path(rel)


def _options(root: Path, **overrides: object) -> ExecutionOptions:
    settings: dict[str, object] = {"cwd": root, "test_options": _QUIET}
    settings.update(overrides)
    return ExecutionOptions(**settings)  # type: ignore[arg-type]


# ── Command construction ──────────────────────────────────────────────


class TestBuildChildCommand:
    def test_full_command(self, tmp_path: Path) -> None:
        options = ExecutionOptions(
            cwd=tmp_path,
            framework="pytest",
            load_paths=(tmp_path / "test", tmp_path / "lib"),
            preload=("helper",),
            test_options=("-x", "-k", "smoke"),
            strict_warnings=True,
            interpreter="/usr/bin/python3",
            interpreter_args=("-X", "dev"),
        )
        command = build_child_command(Path("tests/test_a.py"), options)

        assert command == [
            "/usr/bin/python3",
            "-W",
            "default",
            "-X",
            "dev",
            "-m",
            CHILD_MODULE,
            "--framework",
            "pytest",
            "--load-path",
            str(tmp_path / "test"),
            "--load-path",
            str(tmp_path / "lib"),
            "--preload",
            "helper",
            "--",
            "tests/test_a.py",
            "-x",
            "-k",
            "smoke",
        ]

    def test_no_strict_warnings(self, tmp_path: Path) -> None:
        options = ExecutionOptions(cwd=tmp_path, strict_warnings=False)
        assert interpreter_flags(options) == []
        assert "-W" not in build_child_command(Path("t.py"), options)

    def test_warnings_as_errors_wins(self, tmp_path: Path) -> None:
        options = ExecutionOptions(cwd=tmp_path, strict_warnings=False, warnings_as_errors=True)
        assert interpreter_flags(options) == ["-W", "error"]
        assert reproduction_command(Path("t.py"), options).endswith("-W error -m pytest t.py")


class TestReproductionCommand:
    def test_uses_standalone_framework_and_relative_load_paths(self, tmp_path: Path) -> None:
        options = ExecutionOptions(
            cwd=tmp_path,
            load_paths=(tmp_path / "test", tmp_path / "lib"),
            interpreter="/usr/bin/python3",
            test_options=("-x",),
        )
        command = reproduction_command(Path("tests/test_a.py"), options)

        assert command == (
            "PYTHONPATH=test:lib /usr/bin/python3 -W default -m pytest tests/test_a.py"
        )

    def test_without_load_paths(self, tmp_path: Path) -> None:
        options = ExecutionOptions(
            cwd=tmp_path, framework="unittest", strict_warnings=False, interpreter="python3"
        )
        assert reproduction_command(Path("tests/test_a.py"), options) == (
            "python3 -m unittest tests/test_a.py"
        )

    def test_quotes_awkward_paths(self, tmp_path: Path) -> None:
        options = ExecutionOptions(
            cwd=tmp_path,
            load_paths=(tmp_path / "my tests",),
            strict_warnings=False,
            interpreter="python3",
        )
        command = reproduction_command(Path("tests/test it.py"), options)
        assert shlex.split(command) == [
            "PYTHONPATH=my tests",
            "python3",
            "-m",
            "pytest",
            "tests/test it.py",
        ]


# ── Running children ──────────────────────────────────────────────────


async def test_passing_file(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_ok.py", "def test_ok():\n    assert True\n")
    lines: list[str] = []

    outcome = await run_test_file(test_file, _options(tmp_path), echo=lines.append)

    assert outcome.succeeded
    assert outcome.returncode == 0
    assert outcome.file == test_file
    assert outcome.duration_ms > 0
    assert lines[0] == "--- tests/test_ok.py"
    assert "-m pytest tests/test_ok.py" in lines[1]


async def test_failing_file(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_bad.py", "def test_bad():\n    assert False\n")

    outcome = await run_test_file(test_file, _options(tmp_path), echo=lambda _: None)

    assert not outcome.succeeded
    assert outcome.returncode == 1


async def test_check_raises_child_process_failure(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_bad.py", "def test_bad():\n    assert False\n")

    with pytest.raises(ChildProcessFailure) as exc_info:
        await run_test_file(test_file, _options(tmp_path), echo=lambda _: None, check=True)

    assert exc_info.value.outcome.file == test_file
    assert not exc_info.value.outcome.succeeded


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
async def test_signal_termination_is_failure(tmp_path: Path) -> None:
    test_file = _write(
        tmp_path,
        "tests/test_killed.py",
        "import os, signal\n\ndef test_killed():\n    os.kill(os.getpid(), signal.SIGKILL)\n",
    )

    outcome = await run_test_file(test_file, _options(tmp_path), echo=lambda _: None)

    assert not outcome.succeeded
    assert outcome.returncode is not None
    assert outcome.returncode < 0


async def test_missing_interpreter_raises_launch_failure(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_ok.py", "def test_ok():\n    pass\n")
    options = _options(tmp_path, interpreter=str(tmp_path / "no-such-python"))

    with pytest.raises(LaunchFailure) as exc_info:
        await run_test_file(test_file, options, echo=lambda _: None)

    assert exc_info.value.file == test_file


async def test_load_paths_and_environment_reach_child(tmp_path: Path) -> None:
    _write(tmp_path, "support/shared_fixture_data.py", "VALUE = 'from support'\n")
    test_file = _write(
        tmp_path,
        "tests/test_env.py",
        "import os\n"
        "import shared_fixture_data\n\n"
        "def test_env():\n"
        "    assert shared_fixture_data.VALUE == 'from support'\n"
        "    assert os.environ['ISORUN_TARGET'] == 'sqlite'\n",
    )
    options = _options(
        tmp_path,
        load_paths=(tmp_path / "support",),
        env={"ISORUN_TARGET": "sqlite"},
    )

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded


async def test_preloaded_helper_cannot_start_its_own_run(tmp_path: Path) -> None:
    _write(tmp_path, "tests/test_boom.py", "def test_boom():\n    assert False\n")
    _write(
        tmp_path,
        "support/eager_helper.py",
        "import atexit\n"
        "import pytest\n\n"
        "pytest.main(['-p', 'no:cacheprovider', 'tests/test_boom.py'])\n"
        "atexit.register(pytest.main)\n",
    )
    test_file = _write(tmp_path, "tests/test_ok.py", "def test_ok():\n    pass\n")
    options = _options(
        tmp_path,
        load_paths=(tmp_path / "support",),
        preload=("eager_helper",),
    )

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded


async def test_global_state_does_not_leak_between_files(tmp_path: Path) -> None:
    _write(tmp_path, "support/registry_state.py", "ITEMS = []\n")
    first = _write(
        tmp_path,
        "tests/test_first.py",
        "import registry_state\n\n"
        "def test_first():\n"
        "    registry_state.ITEMS.append('first')\n"
        "    assert registry_state.ITEMS == ['first']\n",
    )
    second = _write(
        tmp_path,
        "tests/test_second.py",
        "import registry_state\n\n"
        "def test_second():\n"
        "    assert registry_state.ITEMS == []\n",
    )
    options = _options(tmp_path, load_paths=(tmp_path / "support",))

    outcomes = [
        await run_test_file(first, options, echo=lambda _: None),
        await run_test_file(second, options, echo=lambda _: None),
    ]

    assert all(o.succeeded for o in outcomes)


async def test_filter_matching_nothing_counts_as_success(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_other.py", "def test_other():\n    pass\n")
    options = _options(tmp_path, test_options=(*_QUIET, "-k", "nomatch"))

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded
    assert outcome.returncode == 0


# ── Warning handling ──────────────────────────────────────────────────

_WARNING_TEST = (
    "import warnings\n\n"
    "def test_old_api():\n"
    "    warnings.warn('old api', DeprecationWarning)\n"
)


async def test_default_warning_reporting_does_not_fail_file(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_warns.py", _WARNING_TEST)
    options = ExecutionOptions(cwd=tmp_path, test_options=_QUIET)
    assert options.strict_warnings

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded


async def test_warnings_as_errors_fails_file(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_warns.py", _WARNING_TEST)
    options = _options(tmp_path, warnings_as_errors=True)

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert not outcome.succeeded


# ── unittest children and CI profiling ────────────────────────────────

_UNITTEST_CASE = (
    "import unittest\n\n"
    "class SampleTest(unittest.TestCase):\n"
    "    def test_value(self):\n"
    "        self.assertEqual(VALUE, 1)\n\n"
)


def _unittest_project(root: Path, value: int) -> Path:
    _write(root, "tests/__init__.py", "")
    return _write(root, "tests/test_sample.py", _UNITTEST_CASE + f"VALUE = {value}\n")


def _ci_options(root: Path, framework: str) -> ExecutionOptions:
    quiet = list(_QUIET) if framework == "pytest" else []
    config = IsorunConfig(root=root, framework=framework, test_options=quiet)
    return config.execution_options(TargetConfig(name="default"), ci=True)


async def test_unittest_child_passes(tmp_path: Path) -> None:
    test_file = _unittest_project(tmp_path, 1)
    options = _options(tmp_path, framework="unittest", test_options=())

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded


async def test_unittest_child_fails(tmp_path: Path) -> None:
    test_file = _unittest_project(tmp_path, 2)
    options = _options(tmp_path, framework="unittest", test_options=())

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert not outcome.succeeded
    assert outcome.returncode == 1


async def test_unittest_ci_profiling_is_accepted(tmp_path: Path) -> None:
    test_file = _unittest_project(tmp_path, 1)
    options = _ci_options(tmp_path, "unittest")
    assert list(options.test_options) == UnittestAdapter().get_profile_args()

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded


async def test_pytest_ci_profiling_is_accepted(tmp_path: Path) -> None:
    test_file = _write(tmp_path, "tests/test_ok.py", "def test_ok():\n    pass\n")
    options = _ci_options(tmp_path, "pytest")
    assert "--durations=10" in options.test_options

    outcome = await run_test_file(test_file, options, echo=lambda _: None)

    assert outcome.succeeded
