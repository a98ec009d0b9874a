"""Candidate builder.

Groups a window of executions by fingerprint and folds each group into one
``Candidate``: window statistics, dominant dimensions, proportional cost
allocation, impact score, performance flags and dbt metadata.
"""

import logging
import math
from collections import Counter, defaultdict
from collections.abc import Iterable

from query_radar_models import (
    Candidate,
    DbtMeta,
    FlagTableContext,
    QueryExecution,
    QueryOrigin,
    QuerySource,
    TableInfo,
    WarehouseCost,
    WindowStats,
)

from query_radar.candidates.flags import (
    DEFAULT_MIN_IMPACT_PCT,
    compute_flags,
    filter_and_rank_flags,
)
from query_radar.candidates.scoring import ScoreInput, score_candidate
from query_radar.config import FlagThresholds
from query_radar.dbt import extract_dbt_metadata, extract_query_tag, is_dbt_query
from query_radar.errors import require_non_negative
from query_radar.fingerprint import FingerprintCache
from query_radar.tables import canonical_table_name, extract_table_names

logger = logging.getLogger(__name__)

TOP_USERS = 3


# --- Helpers ---


def percentile(sorted_values: list[float], p: float) -> float:
    """Nearest-rank percentile: the value at floor(n*p), clamped to the end."""
    if not sorted_values:
        return 0
    idx = math.floor(len(sorted_values) * p)
    return sorted_values[min(idx, len(sorted_values) - 1)]


def _avg(values: list[float]) -> float:
    if not values:
        return 0
    return sum(values) / len(values)


def _dominant(values: list[str]) -> str:
    """Most frequent value; ties go to the value seen first."""
    # Counter preserves insertion order and most_common is a stable sort
    return Counter(values).most_common(1)[0][0]


def derive_origin(source: QuerySource) -> QueryOrigin:
    """Map a query source to the surface that issued the statement."""
    if source.dashboard_id or source.legacy_dashboard_id:
        return QueryOrigin.DASHBOARD
    if source.job_id:
        return QueryOrigin.JOB
    if source.notebook_id:
        return QueryOrigin.NOTEBOOK
    if source.alert_id:
        return QueryOrigin.ALERT
    if source.sql_query_id:
        return QueryOrigin.SQL_EDITOR
    if source.genie_space_id:
        return QueryOrigin.GENIE
    return QueryOrigin.UNKNOWN


def _table_context(sql: str, catalog: dict[str, TableInfo]) -> FlagTableContext | None:
    if not catalog:
        return None
    tables = {}
    for name in extract_table_names(sql):
        info = catalog.get(canonical_table_name(name))
        if info is not None:
            tables[info.table_name] = info
    return FlagTableContext(tables=tables) if tables else None


def _window_stats(runs: list[QueryExecution]) -> WindowStats:
    n = len(runs)
    durations = sorted(r.duration_ms for r in runs)

    pruning = [
        r.pruned_files / (r.pruned_files + r.read_files)
        for r in runs
        if r.pruned_files + r.read_files > 0
    ]
    parallelism = [r.total_task_duration_ms / r.duration_ms for r in runs if r.duration_ms > 0]
    cached = sum(1 for r in runs if r.from_result_cache)

    return WindowStats(
        count=n,
        p50_ms=percentile(durations, 0.5),
        p95_ms=percentile(durations, 0.95),
        total_duration_ms=sum(durations),
        total_read_bytes=sum(r.read_bytes for r in runs),
        total_spilled_bytes=sum(r.spilled_local_bytes for r in runs),
        cache_hit_rate=cached / n if n else 0,
        total_shuffle_bytes=sum(r.shuffle_read_bytes for r in runs),
        total_written_bytes=sum(r.written_bytes for r in runs),
        total_read_rows=sum(r.read_rows for r in runs),
        total_produced_rows=sum(r.produced_rows for r in runs),
        avg_pruning_efficiency=_avg(pruning),
        avg_task_parallelism=_avg(parallelism),
        avg_compilation_ms=_avg([r.compilation_duration_ms for r in runs]),
        avg_queue_wait_ms=_avg([r.waiting_at_capacity_duration_ms for r in runs]),
        avg_compute_wait_ms=_avg([r.waiting_for_compute_duration_ms for r in runs]),
        avg_execution_ms=_avg([r.execution_duration_ms for r in runs]),
        avg_fetch_ms=_avg([r.result_fetch_duration_ms for r in runs]),
        avg_io_cache_percent=_avg([r.read_io_cache_percent for r in runs]),
    )


class _CostTable:
    """Warehouse cost and duration totals for proportional allocation."""

    def __init__(self, executions: list[QueryExecution], costs: Iterable[WarehouseCost]):
        self.dollars: dict[str, float] = defaultdict(float)
        self.dbus: dict[str, float] = defaultdict(float)
        self.duration_ms: dict[str, float] = defaultdict(float)
        for c in costs:
            self.dollars[c.warehouse_id] += c.total_dollars
            self.dbus[c.warehouse_id] += c.total_dbus
        for r in executions:
            self.duration_ms[r.warehouse_id] += r.duration_ms

    def allocate(self, runs: list[QueryExecution]) -> tuple[float, float]:
        """Return (dollars, dbus) owed by these runs."""
        by_warehouse: dict[str, float] = defaultdict(float)
        for r in runs:
            by_warehouse[r.warehouse_id] += r.duration_ms

        dollars = 0.0
        dbus = 0.0
        for wh_id, candidate_ms in by_warehouse.items():
            total_ms = self.duration_ms.get(wh_id, 0)
            if total_ms <= 0:
                continue
            share = candidate_ms / total_ms
            dollars += self.dollars.get(wh_id, 0) * share
            dbus += self.dbus.get(wh_id, 0) * share
        return dollars, dbus


# --- Builder ---


def _build_one(
    fp: str,
    runs: list[QueryExecution],
    costs: _CostTable,
    thresholds: FlagThresholds | None,
    catalog: dict[str, TableInfo],
    min_impact_pct: float,
) -> Candidate:
    stats = _window_stats(runs)

    # Slowest run is the sample; first one wins ties
    sample = runs[0]
    for r in runs[1:]:
        if r.duration_ms > sample.duration_ms:
            sample = r

    warehouse_id = _dominant([r.warehouse_id for r in runs])
    warehouse_name = next(r.warehouse_name for r in runs if r.warehouse_id == warehouse_id)
    workspace_id = _dominant([r.workspace_id for r in runs])
    workspace = next(r for r in runs if r.workspace_id == workspace_id)

    users = Counter(r.executed_by for r in runs)

    result = score_candidate(
        ScoreInput(
            p95_ms=stats.p95_ms,
            p50_ms=stats.p50_ms,
            count=stats.count,
            total_duration_ms=stats.total_duration_ms,
            total_spilled_bytes=stats.total_spilled_bytes,
            total_read_bytes=stats.total_read_bytes,
            avg_waiting_at_capacity_ms=stats.avg_queue_wait_ms,
            cache_hit_rate=stats.cache_hit_rate,
        )
    )
    dollars, dbus = costs.allocate(runs)

    sql = sample.query_text
    is_dbt = is_dbt_query(sql, sample.client_application)
    dbt_parsed = extract_dbt_metadata(sql) if is_dbt else None

    candidate = Candidate(
        fingerprint=fp,
        sample_statement_id=sample.statement_id,
        sample_started_at=sample.started_at.isoformat() if sample.started_at else None,
        sample_query_text=sql,
        sample_executed_by=sample.executed_by,
        warehouse_id=warehouse_id,
        warehouse_name=warehouse_name,
        workspace_id=workspace_id,
        workspace_name=workspace.workspace_name,
        workspace_url=workspace.workspace_url,
        query_origin=_dominant([derive_origin(r.query_source).value for r in runs]),
        query_source=sample.query_source,
        statement_type=_dominant([r.statement_type for r in runs]),
        client_application=_dominant([r.client_application for r in runs]),
        top_users=[name for name, _ in users.most_common(TOP_USERS)],
        unique_user_count=len(users),
        impact_score=result.impact_score,
        score_breakdown=result.breakdown,
        window_stats=stats,
        failed_count=sum(1 for r in runs if r.status.upper() == "FAILED"),
        canceled_count=sum(1 for r in runs if r.status.upper() == "CANCELED"),
        allocated_cost_dollars=dollars,
        allocated_dbus=dbus,
        dbt_meta=DbtMeta(
            is_dbt=is_dbt,
            node_id=dbt_parsed.node_id if dbt_parsed else None,
            query_tag=extract_query_tag(sql),
        ),
        tags=result.tags,
    )

    findings = compute_flags(candidate, thresholds, _table_context(sql, catalog))
    candidate.performance_flags = filter_and_rank_flags(findings, min_impact_pct)
    return candidate


def build_candidates(
    executions: Iterable[QueryExecution],
    warehouse_costs: Iterable[WarehouseCost] = (),
    thresholds: FlagThresholds | None = None,
    table_catalog: Iterable[TableInfo] | None = None,
    min_impact_pct: float = DEFAULT_MIN_IMPACT_PCT,
    cache: FingerprintCache | None = None,
) -> list[Candidate]:
    """Build ranked candidates from one window of executions.

    Args:
        executions: Every execution in the window
        warehouse_costs: DBU and dollar cost rows; several rows per warehouse are summed
        thresholds: Flag thresholds; defaults apply when omitted
        table_catalog: Optional table metadata used to enrich flag advice
        min_impact_pct: Findings estimated below this impact are dropped
        cache: Fingerprint memo for this invocation; a fresh one is used when omitted

    Returns:
        One candidate per fingerprint, sorted by impact score descending
    """
    require_non_negative(min_impact_pct, "min_impact_pct")
    runs = list(executions)
    cache = cache if cache is not None else FingerprintCache()
    catalog = {canonical_table_name(t.table_name): t for t in (table_catalog or [])}
    costs = _CostTable(runs, warehouse_costs)

    groups: dict[str, list[QueryExecution]] = {}
    for r in runs:
        groups.setdefault(cache.get(r.query_text), []).append(r)

    logger.debug(
        f"Fingerprinted {len(runs)} executions into {len(groups)} patterns "
        f"({cache.hits} cache hits)"
    )

    candidates = [
        _build_one(fp, group, costs, thresholds, catalog, min_impact_pct)
        for fp, group in groups.items()
    ]
    # Stable: equal scores keep first-seen order
    candidates.sort(key=lambda c: c.impact_score, reverse=True)

    logger.info(f"Built {len(candidates)} candidates from {len(runs)} executions")
    return candidates
