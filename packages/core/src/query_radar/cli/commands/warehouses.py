"""warehouses command: one sizing recommendation per warehouse."""

import click
from query_radar_models import (
    RecommendationSeverity,
    WarehouseConfig,
    WarehouseCost,
    WarehouseDayRow,
    WarehouseHourRow,
    WarehouseUserRow,
)
from rich.table import Table

from query_radar.cli.utils import (
    USER_ERRORS,
    console,
    echo_json,
    format_dollars,
    thresholds_or_fail,
)
from query_radar.config import get_settings
from query_radar.loaders import load_records
from query_radar.warehouses import (
    aggregate_by_warehouse,
    generate_recommendations,
    rank_recommendations,
)

_FILE = click.Path(exists=True, dir_okay=False)

_SEVERITY_STYLE = {
    RecommendationSeverity.CRITICAL: "red",
    RecommendationSeverity.WARNING: "yellow",
    RecommendationSeverity.INFO: "cyan",
    RecommendationSeverity.HEALTHY: "green",
}


@click.command()
@click.argument("daily", type=_FILE)
@click.option("--users", type=_FILE, default=None, help="Per-user/source query counts")
@click.option("--hourly", type=_FILE, default=None, help="Per-hour-of-day rows")
@click.option("--configs", type=_FILE, default=None, help="Warehouse configurations")
@click.option("--costs", type=_FILE, default=None, help="Warehouse cost rows")
@click.option(
    "--serverless-price",
    type=float,
    default=None,
    help="$/DBU for serverless SQL (default: QUERY_RADAR_SERVERLESS_UNIT_PRICE)",
)
@click.option("--thresholds", type=_FILE, default=None, help="YAML threshold overrides")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
def warehouses(
    daily: str,
    users: str | None,
    hourly: str | None,
    configs: str | None,
    costs: str | None,
    serverless_price: float | None,
    thresholds: str | None,
    as_json: bool,
):
    """Recommend warehouse sizing from a DAILY per-warehouse file.

    DAILY is a JSON or YAML list of per-warehouse, per-day rows covering
    the last 7 days.

    Examples:
        query-radar warehouses daily.json --configs warehouses.json --costs costs.json
        query-radar warehouses daily.json --serverless-price 0.70 --json
    """
    settings = get_settings()
    thr = thresholds_or_fail(thresholds or settings.thresholds_file)
    price = settings.serverless_unit_price if serverless_price is None else serverless_price

    try:
        metrics = aggregate_by_warehouse(
            load_records(daily, WarehouseDayRow),
            load_records(users, WarehouseUserRow),
            load_records(configs, WarehouseConfig),
            load_records(costs, WarehouseCost),
            load_records(hourly, WarehouseHourRow),
            thresholds=thr.recommendations,
        )
        recommendations = rank_recommendations(
            generate_recommendations(metrics, price, thr.recommendations)
        )
    except USER_ERRORS as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        echo_json(recommendations)
        return

    if not recommendations:
        console.print("[dim]No warehouse activity found.[/dim]")
        return

    table = Table(title=f"Recommendations for {len(recommendations)} warehouses")
    table.add_column("Warehouse", style="bold")
    table.add_column("Size")
    table.add_column("Recommendation")
    table.add_column("Confidence")
    table.add_column("Weekly cost", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Wasted", justify="right")

    for r in recommendations:
        style = _SEVERITY_STYLE[r.severity]
        table.add_row(
            r.metrics.warehouse_name,
            r.metrics.size,
            f"[{style}]{r.headline}[/{style}]",
            r.confidence.value,
            format_dollars(r.current_weekly_cost),
            f"{r.cost_delta:+,.2f}",
            format_dollars(r.wasted_queue_cost_estimate),
        )

    console.print(table)
