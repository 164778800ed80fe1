"""rizz command line interface."""

from rizz.cli.main import cli

__all__ = ["cli"]
