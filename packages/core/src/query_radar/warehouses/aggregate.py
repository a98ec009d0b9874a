"""Fold pre-aggregated warehouse rows into 7-day health metrics."""

import logging
from collections import defaultdict
from collections.abc import Iterable

from query_radar_models import (
    DailyBreakdown,
    HourlyActivity,
    TopSource,
    TopUser,
    WarehouseConfig,
    WarehouseCost,
    WarehouseDayRow,
    WarehouseHealthMetrics,
    WarehouseHourRow,
    WarehouseUserRow,
)

from query_radar.config import DEFAULT_RECOMMENDATION_THRESHOLDS, RecommendationThresholds

logger = logging.getLogger(__name__)

TOP_USERS = 5
TOP_SOURCES = 3
AD_HOC = "ad-hoc"


def _group(rows: Iterable, key: str = "warehouse_id") -> dict[str, list]:
    grouped: dict[str, list] = defaultdict(list)
    for row in rows:
        grouped[getattr(row, key)].append(row)
    return grouped


def _hourly(rows: list[WarehouseHourRow]) -> list[HourlyActivity]:
    """Dense 0-23 table; hours without a row stay at zero."""
    hours = {h: HourlyActivity(hour=h) for h in range(24)}
    for r in rows:
        hours[r.hour_of_day] = HourlyActivity(
            hour=r.hour_of_day,
            queries=r.queries,
            capacity_queue_min=r.capacity_queue_min,
            cold_start_min=r.cold_start_min,
            spill_gib=r.spill_gib,
            avg_runtime_sec=r.avg_runtime_sec,
        )
    return [hours[h] for h in range(24)]


def _top_users(rows: list[WarehouseUserRow]) -> list[TopUser]:
    counts: dict[str, int] = defaultdict(int)
    for u in rows:
        counts[u.executed_by] += u.query_count
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [TopUser(name=name, query_count=n) for name, n in ranked[:TOP_USERS]]


def _top_sources(rows: list[WarehouseUserRow]) -> list[TopSource]:
    counts: dict[tuple[str, str], int] = defaultdict(int)
    for u in rows:
        if u.source_id == AD_HOC:
            continue
        counts[(u.source_type, u.source_id)] += u.query_count
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [
        TopSource(source_id=source_id, source_type=source_type, query_count=n)
        for (source_type, source_id), n in ranked[:TOP_SOURCES]
    ]


def _metrics(
    warehouse_id: str,
    days: list[WarehouseDayRow],
    users: list[WarehouseUserRow],
    hours: list[WarehouseHourRow],
    config: WarehouseConfig | None,
    costs: list[WarehouseCost],
    thr: RecommendationThresholds,
) -> WarehouseHealthMetrics:
    total_queries = sum(r.queries for r in days)
    weighted_runtime = sum(r.avg_runtime_sec * r.queries for r in days)

    distinct_users = len({u.executed_by for u in users})
    unique_users = distinct_users or max((r.unique_users for r in days), default=0)

    return WarehouseHealthMetrics(
        warehouse_id=warehouse_id,
        warehouse_name=config.name if config else warehouse_id,
        size=config.size if config else "Unknown",
        warehouse_type=config.warehouse_type if config else "Unknown",
        min_clusters=config.min_clusters if config else 1,
        max_clusters=config.max_clusters if config else 1,
        auto_stop_minutes=config.auto_stop_minutes if config else 0,
        is_serverless=any(c.is_serverless for c in costs),
        total_queries=total_queries,
        unique_users=unique_users,
        total_spill_gib=sum(r.spill_gib for r in days),
        total_capacity_queue_min=sum(r.capacity_queue_min for r in days),
        total_cold_start_min=sum(r.cold_start_min for r in days),
        avg_runtime_sec=weighted_runtime / total_queries if total_queries > 0 else 0,
        p95_sec=max((r.p95_sec for r in days), default=0),
        weekly_dbus=sum(c.total_dbus for c in costs),
        weekly_cost_dollars=sum(c.total_dollars for c in costs),
        days_with_spill=sum(1 for r in days if r.spill_gib > thr.spill_gib_day),
        days_with_capacity_queue=sum(
            1 for r in days if r.capacity_queue_min > thr.capacity_queue_min_day
        ),
        days_with_cold_start=sum(1 for r in days if r.cold_start_min > thr.cold_start_min_day),
        active_days=len(days),
        daily_breakdown=[
            DailyBreakdown(
                date=r.query_date,
                queries=r.queries,
                spill_gib=r.spill_gib,
                capacity_queue_min=r.capacity_queue_min,
                cold_start_min=r.cold_start_min,
            )
            for r in days
        ],
        hourly_activity=_hourly(hours),
        top_users=_top_users(users),
        top_sources=_top_sources(users),
    )


def aggregate_by_warehouse(
    day_rows: Iterable[WarehouseDayRow],
    user_rows: Iterable[WarehouseUserRow] = (),
    configs: Iterable[WarehouseConfig] = (),
    costs: Iterable[WarehouseCost] = (),
    hour_rows: Iterable[WarehouseHourRow] = (),
    thresholds: RecommendationThresholds | None = None,
) -> list[WarehouseHealthMetrics]:
    """Build one metrics record per warehouse that has per-day rows.

    Warehouses are returned most expensive first.
    """
    thr = thresholds or DEFAULT_RECOMMENDATION_THRESHOLDS
    days_by_wh = _group(day_rows)
    users_by_wh = _group(user_rows)
    hours_by_wh = _group(hour_rows)
    costs_by_wh = _group(costs)
    config_by_wh = {c.warehouse_id: c for c in configs}

    results = [
        _metrics(
            wh_id,
            days,
            users_by_wh.get(wh_id, []),
            hours_by_wh.get(wh_id, []),
            config_by_wh.get(wh_id),
            costs_by_wh.get(wh_id, []),
            thr,
        )
        for wh_id, days in days_by_wh.items()
    ]
    results.sort(key=lambda m: m.weekly_cost_dollars, reverse=True)

    logger.info(f"Aggregated health metrics for {len(results)} warehouses")
    return results
