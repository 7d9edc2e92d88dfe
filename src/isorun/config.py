"""Configuration parsing from ``.isorun.yml`` and the worker environment."""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from isorun.adapters.registry import get_registry
from isorun.sharding.splitter import InvalidShardSpec, ShardSpec

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".isorun.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_DEFAULT_TARGET = "default"
_DEFAULT_INCLUDE = ["tests/**/test_*.py", "tests/**/*_test.py"]

# Shard variables, in lookup order: (count, index)
_SHARD_ENV_VARS = [
    ("WORKER_JOB_COUNT", "WORKER_JOB_INDEX"),
    ("BUILDKITE_PARALLEL_JOB_COUNT", "BUILDKITE_PARALLEL_JOB"),
]
_TEST_OPTIONS_ENV = "TEST_OPTIONS"
_TRUTHY = {"true", "1", "yes", "on"}
TARGET_ENV = "ISORUN_TARGET"


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _str_list(value: Any, *, split: bool = False) -> list[str]:
    """Coerce a YAML scalar or list into a list of strings.

    A scalar is one item unless *split* is set, in which case it is split on
    whitespace (argument strings such as ``test_options``).
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split() if split else [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    return [str(value)]


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


@dataclass
class TargetConfig:
    """A named selection of test files, e.g. one database adapter."""

    name: str
    """Target name, exported to children as ``ISORUN_TARGET``."""

    include: list[str] = field(default_factory=lambda: list(_DEFAULT_INCLUDE))
    """Glob patterns (relative to the project root) selecting test files."""

    exclude: list[str] = field(default_factory=list)
    """``fnmatch`` patterns removing files matched by ``include``."""

    also_include: list[str] = field(default_factory=list)
    """Glob patterns added after exclusion (adapter-specific files)."""

    env: dict[str, str] = field(default_factory=dict)
    """Extra environment variables for every child of this target."""


@dataclass(frozen=True)
class ExecutionOptions:
    """Settings passed uniformly to every child process of one run."""

    cwd: Path
    """Project root the children run in."""

    framework: str = "pytest"
    """Name of the framework adapter driving each child."""

    load_paths: tuple[Path, ...] = ()
    """Absolute directories for ``sys.path``; the first has highest priority."""

    preload: tuple[str, ...] = ()
    """Modules imported before the run with autorun disarmed."""

    test_options: tuple[str, ...] = ()
    """Arguments forwarded unchanged to the framework."""

    strict_warnings: bool = True
    """Report every warning in the children (``-W default``)."""

    warnings_as_errors: bool = False
    """Make warnings fatal in the children (``-W error``)."""

    interpreter: str = sys.executable
    """Python executable used for children."""

    interpreter_args: tuple[str, ...] = ()
    """Extra interpreter flags placed before ``-m``."""

    env: Mapping[str, str] = field(default_factory=dict)
    """Environment overrides applied on top of the parent's environment."""


@dataclass
class IsorunConfig:
    """Complete isorun configuration from ``.isorun.yml`` and the environment."""

    root: Path
    """Project root directory."""

    framework: str = "pytest"
    """Test framework adapter name."""

    load_paths: list[str] = field(default_factory=list)
    """Load-path directories, relative to the root or absolute."""

    preload: list[str] = field(default_factory=list)
    """Support modules preloaded in every child."""

    strict_warnings: bool = True
    """Show every warning raised in the children."""

    warnings_as_errors: bool = False
    """Turn warnings into errors in the children."""

    interpreter: str = sys.executable
    """Python executable for the children."""

    interpreter_args: list[str] = field(default_factory=list)
    """Extra interpreter flags (e.g. ``-X dev``)."""

    test_options: list[str] = field(default_factory=list)
    """Framework arguments from the file followed by ``TEST_OPTIONS``."""

    profile: bool | None = None
    """Report slow tests; ``None`` means on in CI only."""

    targets: dict[str, TargetConfig] = field(default_factory=dict)
    """Named file selections."""

    shard: ShardSpec = field(default_factory=ShardSpec)
    """This worker's shard, from the environment."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""

    def get_target(self, name: str) -> TargetConfig:
        """Return the target called *name*.

        Raises:
            KeyError: If no such target is configured.
        """
        try:
            return self.targets[name]
        except KeyError:
            msg = f"Unknown target {name!r} (configured: {', '.join(sorted(self.targets))})"
            raise KeyError(msg) from None

    def resolved_load_paths(self) -> tuple[Path, ...]:
        """Return load paths as absolute paths, duplicates removed, order kept."""
        resolved = [str((self.root / p).resolve()) for p in self.load_paths]
        return tuple(Path(p) for p in _dedupe(resolved))

    def execution_options(self, target: TargetConfig, *, ci: bool = False) -> ExecutionOptions:
        """Freeze the settings for one target's run."""
        profile = ci if self.profile is None else self.profile
        test_options = list(self.test_options)
        if profile:
            test_options.extend(get_registry().get(self.framework).get_profile_args())

        env = {TARGET_ENV: target.name, **target.env}

        return ExecutionOptions(
            cwd=self.root,
            framework=self.framework,
            load_paths=self.resolved_load_paths(),
            preload=tuple(self.preload),
            test_options=tuple(test_options),
            strict_warnings=self.strict_warnings,
            warnings_as_errors=self.warnings_as_errors,
            interpreter=self.interpreter,
            interpreter_args=tuple(self.interpreter_args),
            env=env,
        )


def parse_test_options(value: str | None) -> list[str]:
    """Split a whitespace-separated ``TEST_OPTIONS`` value."""
    return value.split() if value else []


def _parse_shard_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        msg = f"{name} must be an integer, got {value!r}"
        raise InvalidShardSpec(msg) from None


def shard_spec_from_env(environ: Mapping[str, str] | None = None) -> ShardSpec:
    """Build this worker's :class:`ShardSpec` from the environment.

    ``WORKER_JOB_COUNT``/``WORKER_JOB_INDEX`` are read first; Buildkite's
    ``BUILDKITE_PARALLEL_JOB_COUNT``/``BUILDKITE_PARALLEL_JOB`` are the
    fallback. Without a count the run is unsharded. The index may only be
    omitted when the count is 1.

    Raises:
        InvalidShardSpec: If the variables are malformed or out of range.
    """
    env = os.environ if environ is None else environ
    for count_var, index_var in _SHARD_ENV_VARS:
        count_raw = env.get(count_var, "").strip()
        if not count_raw:
            continue
        count = _parse_shard_int(count_var, count_raw)
        index_raw = env.get(index_var, "").strip()
        if not index_raw:
            if count > 1:
                msg = f"{index_var} is required when {count_var} is {count}"
                raise InvalidShardSpec(msg)
            index = 0
        else:
            index = _parse_shard_int(index_var, index_raw)
        logger.debug("Shard %d/%d from %s/%s", index, count, index_var, count_var)
        return ShardSpec(index=index, count=count)
    return ShardSpec()


def _parse_targets(raw: dict[str, Any]) -> dict[str, TargetConfig]:
    """Parse the ``targets`` section; an absent section yields one default target."""
    targets_raw = raw.get("targets", {})
    if not isinstance(targets_raw, dict) or not targets_raw:
        return {_DEFAULT_TARGET: TargetConfig(name=_DEFAULT_TARGET)}

    targets: dict[str, TargetConfig] = {}
    for name, target_raw in targets_raw.items():
        if not isinstance(target_raw, dict):
            target_raw = {}
        include = target_raw.get("include")
        env_raw = target_raw.get("env", {})
        targets[str(name)] = TargetConfig(
            name=str(name),
            include=_str_list(include) if include is not None else list(_DEFAULT_INCLUDE),
            exclude=_str_list(target_raw.get("exclude")),
            also_include=_str_list(target_raw.get("also_include")),
            env=(
                {str(k): str(v) for k, v in env_raw.items()} if isinstance(env_raw, dict) else {}
            ),
        )
    return targets


def _parse_profile(value: Any) -> bool | None:
    if value is None or value == "auto":
        return None
    return _parse_flag(value, default=False)


def _parse_flag(value: Any, *, default: bool) -> bool:
    """Read a boolean that may arrive as a string after ``${VAR}`` expansion."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def load_config(root: str | Path, environ: Mapping[str, str] | None = None) -> IsorunConfig:
    """Load and parse the complete ``.isorun.yml`` configuration.

    Falls back to defaults when the file is missing or incomplete and reads
    the shard and ``TEST_OPTIONS`` variables from *environ* (``os.environ``
    by default).

    Raises:
        InvalidShardSpec: If the shard variables are malformed.
    """
    env = os.environ if environ is None else environ
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    test_options = _str_list(raw.get("test_options"), split=True)
    test_options.extend(parse_test_options(env.get(_TEST_OPTIONS_ENV)))

    return IsorunConfig(
        root=root_path,
        framework=str(raw.get("framework", "pytest")),
        load_paths=_str_list(raw.get("load_paths")),
        preload=_str_list(raw.get("preload")),
        strict_warnings=_parse_flag(raw.get("strict_warnings"), default=True),
        warnings_as_errors=_parse_flag(raw.get("warnings_as_errors"), default=False),
        interpreter=str(raw.get("interpreter") or sys.executable),
        interpreter_args=_str_list(raw.get("interpreter_args"), split=True),
        test_options=test_options,
        profile=_parse_profile(raw.get("profile")),
        targets=_parse_targets(raw),
        shard=shard_spec_from_env(env),
        raw=raw,
    )


def validate_config(config: IsorunConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    known = get_registry().names()
    if config.framework not in known:
        errors.append(f"framework must be one of: {', '.join(known)} (got: {config.framework})")

    if not config.interpreter:
        errors.append("interpreter must not be empty")

    for name, target in config.targets.items():
        if not target.include:
            errors.append(f"targets.{name}.include must list at least one pattern")

    for path in config.resolved_load_paths():
        if not path.is_dir():
            logger.warning("Load path %s does not exist", path)

    return errors
