"""Process and CI environment helpers."""
