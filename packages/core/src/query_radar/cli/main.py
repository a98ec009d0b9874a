"""Click command group for query-radar.

Commands stay thin: they load input files, call the pipeline and render
the result.
"""

import click

from query_radar.cli.commands.candidates import candidates
from query_radar.cli.commands.warehouses import warehouses
from query_radar.cli.utils import _get_cli_version, configure_logging, console
from query_radar.config import get_settings
from query_radar.fingerprint import fingerprint as fingerprint_sql
from query_radar.fingerprint import normalize_sql


@click.group()
@click.version_option(version=_get_cli_version())
@click.option("--log-level", default=None, help="Log level (default: QUERY_RADAR_LOG_LEVEL)")
def main(log_level: str | None):
    """query-radar - find costly query patterns and right-size SQL warehouses."""
    configure_logging(log_level or get_settings().log_level)


@main.command()
@click.argument("sql")
def fingerprint(sql: str):
    """Show the normalized form and fingerprint of SQL.

    Examples:
        query-radar fingerprint "SELECT * FROM t WHERE id = 42"
    """
    console.print(f"[bold]Fingerprint:[/bold] [cyan]{fingerprint_sql(sql)}[/cyan]")
    console.print("[bold]Normalized:[/bold]  ", end="")
    # SQL may contain brackets that rich would read as markup
    console.print(normalize_sql(sql), markup=False, highlight=False, soft_wrap=True)


main.add_command(candidates)
main.add_command(warehouses)


if __name__ == "__main__":
    main()
