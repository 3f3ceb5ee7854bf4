"""Command-line interface for toolstream."""

from toolstream.cli.main import app

__all__ = ["app"]
