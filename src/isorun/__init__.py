"""isorun: run each test file in its own interpreter process."""

__version__ = "0.1.0"
