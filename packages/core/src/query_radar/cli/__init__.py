"""query-radar CLI package."""

from query_radar.cli.main import main

__all__ = ["main"]
