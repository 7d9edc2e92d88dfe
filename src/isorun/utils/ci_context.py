"""CI context detection utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

_TRUTHY = {"true", "1", "yes"}

# (provider, marker variable, job identifier variable)
_PROVIDERS = [
    ("github-actions", "GITHUB_ACTIONS", "GITHUB_JOB"),
    ("gitlab-ci", "GITLAB_CI", "CI_JOB_ID"),
    ("buildkite", "BUILDKITE", "BUILDKITE_JOB_ID"),
    ("circleci", "CIRCLECI", "CIRCLE_BUILD_NUM"),
]


@dataclass
class CIContext:
    """Detected CI execution context."""

    is_ci: bool
    """Running in CI environment."""

    provider: str | None = None
    """CI provider name, None for generic CI or local runs."""

    job_id: str | None = None
    """Provider-specific job identifier."""


def detect_ci_context(environ: Mapping[str, str] | None = None) -> CIContext:
    """Detect the CI context from environment variables.

    Supports GitHub Actions, GitLab CI, Buildkite, CircleCI, and the generic
    ``CI`` variable.

    Returns:
        CIContext with detected values.
    """
    env = os.environ if environ is None else environ

    for provider, marker, job_var in _PROVIDERS:
        if env.get(marker, "").strip().lower() in _TRUTHY:
            return CIContext(is_ci=True, provider=provider, job_id=env.get(job_var) or None)

    if env.get("CI", "").strip().lower() in _TRUTHY:
        return CIContext(is_ci=True)

    return CIContext(is_ci=False)
