"""candidates command: rank recurring query patterns by impact."""

import click
from query_radar_models import QueryExecution, TableInfo, WarehouseCost
from rich.table import Table

from query_radar.candidates import build_candidates, explain_score
from query_radar.cli.utils import (
    USER_ERRORS,
    console,
    echo_json,
    format_dollars,
    format_ms,
    thresholds_or_fail,
)
from query_radar.config import get_settings
from query_radar.errors import require_non_negative
from query_radar.loaders import load_records

_FILE = click.Path(exists=True, dir_okay=False)


@click.command()
@click.argument("executions", type=_FILE)
@click.option("--costs", type=_FILE, default=None, help="Warehouse cost rows")
@click.option("--tables", type=_FILE, default=None, help="Table metadata for flag advice")
@click.option("--thresholds", type=_FILE, default=None, help="YAML threshold overrides")
@click.option("--min-impact", type=float, default=None, help="Drop findings below this impact %")
@click.option("--limit", type=int, default=None, help="Rows to show (default: QUERY_RADAR_TOP_N)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
def candidates(
    executions: str,
    costs: str | None,
    tables: str | None,
    thresholds: str | None,
    min_impact: float | None,
    limit: int | None,
    as_json: bool,
):
    """Build ranked candidates from an EXECUTIONS file.

    EXECUTIONS is a JSON or YAML list of query execution records.

    Examples:
        query-radar candidates runs.json --costs costs.json
        query-radar candidates runs.yaml --min-impact 20 --json
    """
    settings = get_settings()
    thr = thresholds_or_fail(thresholds or settings.thresholds_file)

    try:
        limit = int(require_non_negative(settings.top_n if limit is None else limit, "limit"))
        results = build_candidates(
            load_records(executions, QueryExecution),
            load_records(costs, WarehouseCost),
            thresholds=thr.flags,
            table_catalog=load_records(tables, TableInfo),
            min_impact_pct=settings.min_impact_pct if min_impact is None else min_impact,
        )
    except USER_ERRORS as e:
        raise click.ClickException(str(e)) from e

    shown = results[:limit]
    if as_json:
        echo_json(shown)
        return

    if not shown:
        console.print("[dim]No query patterns found.[/dim]")
        return

    table = Table(title=f"Top {len(shown)} of {len(results)} query patterns")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Fingerprint", style="cyan")
    table.add_column("Runs", justify="right")
    table.add_column("p95", justify="right")
    table.add_column("Warehouse")
    table.add_column("Cost", justify="right")
    table.add_column("Flags")
    table.add_column("Why")

    for c in shown:
        table.add_row(
            str(c.impact_score),
            c.fingerprint,
            str(c.window_stats.count),
            format_ms(c.window_stats.p95_ms),
            c.warehouse_name,
            format_dollars(c.allocated_cost_dollars),
            ", ".join(f.label for f in c.performance_flags) or "-",
            "; ".join(explain_score(c.score_breakdown)) or "-",
        )

    console.print(table)
