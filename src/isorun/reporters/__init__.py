"""Reporters for isolated test runs."""

from isorun.reporters.terminal import reporter

__all__ = ["reporter"]
