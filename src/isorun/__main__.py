"""Allow ``python -m isorun``."""

from isorun.cli import cli

if __name__ == "__main__":
    cli()
