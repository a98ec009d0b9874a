"""Shared helpers for the query-radar CLI: console, version, logging, output."""

import json
import logging
from collections.abc import Iterable
from importlib.metadata import PackageNotFoundError, version

import click
from pydantic import BaseModel, ValidationError
from rich.console import Console

from query_radar.config import AnalysisThresholds, load_thresholds
from query_radar.errors import ContractViolationError, InputFileError

console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Errors reported to the user as a plain message rather than a traceback
USER_ERRORS = (InputFileError, ContractViolationError, ValidationError)


def _get_cli_version() -> str:
    """Get installed package version.

    Falls back to "unknown" when running from a source checkout.
    """
    try:
        return version("query-radar")
    except PackageNotFoundError:
        return "unknown"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def thresholds_or_fail(path: str | None) -> AnalysisThresholds:
    try:
        return load_thresholds(path)
    except USER_ERRORS as e:
        raise click.ClickException(str(e)) from e


def echo_json(records: Iterable[BaseModel]) -> None:
    """Print records as a JSON array."""
    payload = [r.model_dump(mode="json") for r in records]
    click.echo(json.dumps(payload, indent=2))


def format_dollars(value: float) -> str:
    return f"${value:,.2f}"


def format_ms(ms: float) -> str:
    if ms >= 60_000:
        return f"{ms / 60_000:.1f}m"
    if ms >= 1_000:
        return f"{ms / 1_000:.1f}s"
    return f"{ms:.0f}ms"
