"""Performance-flag engine.

Each rule is a plain function over a candidate's ``WindowStats`` that
returns a ``PerformanceFlagFinding`` or ``None``. Rules are independent:
every rule in ``RULES`` is evaluated, and the order of the list is the
order findings come out of ``compute_flags``.

Impact estimates are a share (0-100) of the candidate's total phase time
(compile + queue + compute wait + execute + fetch), or a byte/row ratio
where time does not apply. Rules that cannot estimate leave it ``None``.

Table context, when supplied, only appends advice to the detail text. It
never changes whether a rule fires or its impact number.
"""

import logging
import math
import re
from collections.abc import Callable

from query_radar_models import (
    Candidate,
    FlagKind,
    FlagSeverity,
    FlagTableContext,
    PerformanceFlagFinding,
    TableInfo,
    WindowStats,
)

from query_radar.config import DEFAULT_FLAG_THRESHOLDS, FlagThresholds
from query_radar.errors import ContractViolationError

logger = logging.getLogger(__name__)

DEFAULT_MIN_IMPACT_PCT = 10

# Tables with more files than this are worth compacting
_MANY_FILES = 1_000

_GROUP_BY = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
_AGGREGATE_CALL = re.compile(
    r"\b(?:COUNT|SUM|AVG|MIN|MAX|APPROX_COUNT_DISTINCT|PERCENTILE_APPROX)\s*\(",
    re.IGNORECASE,
)

Rule = Callable[
    [WindowStats, Candidate, FlagThresholds, list[TableInfo]],
    PerformanceFlagFinding | None,
]


# =============================================================================
# Helpers
# =============================================================================


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def _share(part: float, total: float) -> int | None:
    """part/total as a rounded percentage, or None without a total."""
    if total <= 0:
        return None
    return min(100, max(0, _round(part / total * 100)))


def _total_phase_ms(ws: WindowStats) -> float:
    return (
        ws.avg_compilation_ms
        + ws.avg_queue_wait_ms
        + ws.avg_compute_wait_ms
        + ws.avg_execution_ms
        + ws.avg_fetch_ms
    )


def format_size(num_bytes: float) -> str:
    if num_bytes >= 1024**3:
        return f"{num_bytes / 1024**3:.1f} GB"
    if num_bytes >= 1024**2:
        return f"{num_bytes / 1024**2:.1f} MB"
    if num_bytes >= 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{int(num_bytes)} B"


def _seconds(ms: float) -> str:
    return f"{ms / 1000:.1f}s"


def _names(tables: list[TableInfo]) -> str:
    return ", ".join(t.table_name for t in tables)


def _finding(
    kind: FlagKind,
    label: str,
    detail: str,
    impact: int | None = None,
    critical: bool = False,
) -> PerformanceFlagFinding:
    return PerformanceFlagFinding(
        flag=kind,
        label=label,
        severity=FlagSeverity.CRITICAL if critical else FlagSeverity.WARNING,
        detail=detail,
        estimated_impact_pct=impact,
    )


# =============================================================================
# Rules
# =============================================================================


def long_running(ws, candidate, thr, tables):
    if ws.p95_ms <= thr.long_running_ms:
        return None
    impact = None
    if ws.p95_ms > 0 and _total_phase_ms(ws) > 0:
        impact = min(100, _round((ws.p95_ms - thr.long_running_ms) / ws.p95_ms * 100))
    return _finding(
        FlagKind.LONG_RUNNING,
        "Long Running",
        f"P95 latency {_seconds(ws.p95_ms)} exceeds "
        f"{thr.long_running_ms / 1000:.0f}s threshold",
        impact,
        critical=ws.p95_ms > thr.long_running_ms * 3,
    )


def high_spill(ws, candidate, thr, tables):
    if ws.total_spilled_bytes <= thr.high_spill_bytes:
        return None
    return _finding(
        FlagKind.HIGH_SPILL,
        "High Spill",
        f"{format_size(ws.total_spilled_bytes)} spilled to disk",
        _share(ws.total_spilled_bytes, ws.total_read_bytes + ws.total_spilled_bytes),
        critical=ws.total_spilled_bytes > thr.high_spill_bytes * 5,
    )


def high_shuffle(ws, candidate, thr, tables):
    if ws.total_shuffle_bytes <= thr.high_shuffle_bytes:
        return None
    impact = None
    if ws.total_read_bytes > 0:
        impact = min(100, _round(ws.total_shuffle_bytes / ws.total_read_bytes * 50))
    return _finding(
        FlagKind.HIGH_SHUFFLE,
        "High Shuffle",
        f"{format_size(ws.total_shuffle_bytes)} shuffled across nodes",
        impact,
    )


def low_cache_hit(ws, candidate, thr, tables):
    if ws.avg_io_cache_percent >= thr.low_cache_hit_pct or ws.count <= 1:
        return None
    return _finding(
        FlagKind.LOW_CACHE_HIT,
        "Low I/O Cache",
        f"I/O cache hit {ws.avg_io_cache_percent:.0f}% (threshold: {thr.low_cache_hit_pct:g}%)",
        min(100, max(0, _round(100 - ws.avg_io_cache_percent))),
        critical=ws.avg_io_cache_percent < 10,
    )


def low_pruning(ws, candidate, thr, tables):
    if ws.avg_pruning_efficiency >= thr.low_pruning_pct or ws.total_read_rows <= 0:
        return None
    detail = (
        f"Pruning efficiency {ws.avg_pruning_efficiency * 100:.0f}% "
        f"(threshold: {thr.low_pruning_pct * 100:.0f}%). "
        "Run ANALYZE TABLE ... COMPUTE STATISTICS so file skipping has fresh stats"
    )
    clustered = [t for t in tables if t.clustering_columns]
    unlaid = [t for t in tables if not t.clustering_columns and not t.partition_columns]
    if clustered:
        cols = sorted({c for t in clustered for c in t.clustering_columns})
        detail += (
            f". {_names(clustered)} already use clustering on {', '.join(cols)}; "
            "check that filters reference those columns"
        )
    elif unlaid:
        detail += (
            f". No clustering or partitioning on {_names(unlaid)}; "
            "consider Liquid Clustering (ALTER TABLE ... CLUSTER BY) on the filter columns"
        )
    return _finding(
        FlagKind.LOW_PRUNING,
        "Low Pruning",
        detail,
        min(100, max(0, _round((1 - ws.avg_pruning_efficiency) * 100))),
    )


def high_queue_time(ws, candidate, thr, tables):
    if ws.avg_queue_wait_ms <= thr.high_queue_wait_ms:
        return None
    return _finding(
        FlagKind.HIGH_QUEUE_TIME,
        "Queued",
        f"Avg {_seconds(ws.avg_queue_wait_ms)} in queue",
        _share(ws.avg_queue_wait_ms, _total_phase_ms(ws)),
        critical=ws.avg_queue_wait_ms > thr.high_queue_wait_ms * 3,
    )


def high_compile_time(ws, candidate, thr, tables):
    if ws.avg_compilation_ms <= thr.high_compile_ms:
        return None
    return _finding(
        FlagKind.HIGH_COMPILE_TIME,
        "Slow Compile",
        f"Avg {_seconds(ws.avg_compilation_ms)} compile time",
        _share(ws.avg_compilation_ms, _total_phase_ms(ws)),
    )


def frequent_pattern(ws, candidate, thr, tables):
    if ws.count <= thr.frequent_pattern_count:
        return None
    # Cumulative cost, not a per-run share
    return _finding(
        FlagKind.FREQUENT_PATTERN,
        "Frequent",
        f"{ws.count} executions in window",
    )


def cache_miss(ws, candidate, thr, tables):
    if ws.cache_hit_rate >= thr.cache_miss_rate or ws.count <= 2:
        return None
    return _finding(
        FlagKind.CACHE_MISS,
        "Cache Miss",
        f"Result cache hit rate {ws.cache_hit_rate * 100:.0f}%",
        min(100, max(0, _round((1 - ws.cache_hit_rate) * 80))),
    )


def large_write(ws, candidate, thr, tables):
    if ws.total_written_bytes <= thr.large_write_bytes:
        return None
    return _finding(
        FlagKind.LARGE_WRITE,
        "Large Write",
        f"{format_size(ws.total_written_bytes)} written",
    )


def exploding_join(ws, candidate, thr, tables):
    if ws.total_read_rows <= 0 or ws.total_produced_rows <= 0:
        return None
    ratio = ws.total_produced_rows / ws.total_read_rows
    if ratio <= thr.exploding_join_ratio:
        return None
    excess = ws.total_produced_rows - ws.total_read_rows
    return _finding(
        FlagKind.EXPLODING_JOIN,
        "Exploding Join",
        f"Produces {ratio:.1f}x more rows than read "
        f"({ws.total_produced_rows:,} produced vs {ws.total_read_rows:,} read). "
        "Likely a cross join or many-to-many; check join keys and declare PK/FK constraints",
        min(100, _round(excess / ws.total_produced_rows * 100)),
        critical=ratio > thr.exploding_join_ratio * 5,
    )


def filtering_join(ws, candidate, thr, tables):
    if ws.total_read_rows <= 0 or ws.total_produced_rows <= 0:
        return None
    ratio = ws.total_read_rows / ws.total_produced_rows
    if ratio <= thr.filtering_join_ratio:
        return None
    wasted = ws.total_read_rows - ws.total_produced_rows
    return _finding(
        FlagKind.FILTERING_JOIN,
        "Filtering Join",
        f"Reads {ratio:.1f}x more rows than produced "
        f"({ws.total_read_rows:,} read, {ws.total_produced_rows:,} produced). "
        "Filter before the join; PK/FK constraints let the optimizer prune earlier",
        min(100, _round(wasted / ws.total_read_rows * 100)),
    )


def high_queue_ratio(ws, candidate, thr, tables):
    if ws.avg_execution_ms <= 0:
        return None
    ratio = ws.avg_queue_wait_ms / ws.avg_execution_ms
    if ratio <= thr.high_queue_ratio_pct:
        return None
    pct = _round(ratio * 100)
    impact = _share(ws.avg_queue_wait_ms, _total_phase_ms(ws))
    return _finding(
        FlagKind.HIGH_QUEUE_RATIO,
        "Queue Dominated",
        f"Queue wait is {pct}% of execution time "
        f"({_seconds(ws.avg_queue_wait_ms)} / {_seconds(ws.avg_execution_ms)}). "
        "Scaling issue, not a query issue",
        impact if impact is not None else min(100, pct),
        critical=pct > 100,
    )


def cold_query(ws, candidate, thr, tables):
    if (
        ws.count <= 2
        or ws.cache_hit_rate >= thr.cold_query_cache_hit_pct
        or ws.avg_io_cache_percent >= thr.cold_query_io_cache_pct
    ):
        return None
    detail = (
        f"Result cache {ws.cache_hit_rate * 100:.0f}%, "
        f"IO cache {ws.avg_io_cache_percent:.0f}%. Query never benefits from caching; "
        "table may need OPTIMIZE or Liquid Clustering"
    )
    no_po = [t for t in tables if t.is_managed and not t.predictive_opt_enabled]
    if no_po:
        detail += f". Enable Predictive Optimization on {_names(no_po)}"
    # Warm runs rarely save more than 80%
    impact = min(80, _round((1 - ws.cache_hit_rate) * (100 - ws.avg_io_cache_percent)))
    return _finding(FlagKind.COLD_QUERY, "Always Cold", detail, max(0, impact))


def compilation_heavy(ws, candidate, thr, tables):
    compile_exec = ws.avg_compilation_ms + ws.avg_execution_ms
    if compile_exec <= 0 or ws.avg_compilation_ms <= thr.compilation_heavy_min_ms:
        return None
    if ws.avg_compilation_ms / compile_exec <= thr.compilation_heavy_pct:
        return None
    pct = _round(ws.avg_compilation_ms / compile_exec * 100)
    detail = (
        f"Compilation is {pct}% of processing time ({_seconds(ws.avg_compilation_ms)}). "
        "Complex views, many small tables or deeply nested CTEs; "
        "ANALYZE TABLE keeps planner statistics current"
    )
    fragmented = [t for t in tables if (t.num_files or 0) > _MANY_FILES]
    if fragmented:
        detail += f". Run OPTIMIZE to compact small files on {_names(fragmented)}"
    impact = _share(ws.avg_compilation_ms, _total_phase_ms(ws))
    return _finding(
        FlagKind.COMPILATION_HEAVY,
        "Compilation Heavy",
        detail,
        impact if impact is not None else pct,
    )


def materialized_view_candidate(ws, candidate, thr, tables):
    if candidate.statement_type.upper() != "SELECT":
        return None
    if ws.count < thr.mv_candidate_min_count or ws.cache_hit_rate >= thr.mv_candidate_cache_hit_rate:
        return None
    sql = candidate.sample_query_text
    if not (_GROUP_BY.search(sql) or _AGGREGATE_CALL.search(sql)):
        return None
    return _finding(
        FlagKind.MATERIALIZED_VIEW_CANDIDATE,
        "Materialized View Candidate",
        f"Aggregation runs {ws.count} times with {ws.cache_hit_rate * 100:.0f}% result "
        "cache hits; precompute it with CREATE MATERIALIZED VIEW",
    )


RULES: list[Rule] = [
    long_running,
    high_spill,
    high_shuffle,
    low_cache_hit,
    low_pruning,
    high_queue_time,
    high_compile_time,
    frequent_pattern,
    cache_miss,
    large_write,
    exploding_join,
    filtering_join,
    high_queue_ratio,
    cold_query,
    compilation_heavy,
    materialized_view_candidate,
]


# =============================================================================
# Public API
# =============================================================================


def compute_flags(
    candidate: Candidate,
    thresholds: FlagThresholds | None = None,
    table_context: FlagTableContext | None = None,
) -> list[PerformanceFlagFinding]:
    """Evaluate every rule against a candidate, in rule order."""
    thr = thresholds or DEFAULT_FLAG_THRESHOLDS
    tables = list(table_context.tables.values()) if table_context else []
    ws = candidate.window_stats

    findings = []
    for rule in RULES:
        finding = rule(ws, candidate, thr, tables)
        if finding is not None:
            findings.append(finding)
    return findings


def filter_and_rank_flags(
    findings: list[PerformanceFlagFinding],
    min_impact_pct: float = DEFAULT_MIN_IMPACT_PCT,
) -> list[PerformanceFlagFinding]:
    """Drop low-impact findings and rank the rest.

    Estimated findings below ``min_impact_pct`` are dropped; the rest sort
    by impact, descending. Un-estimated findings are always kept and come
    last, in their original order.
    """
    if min_impact_pct < 0:
        raise ContractViolationError("min_impact_pct", f"must be >= 0, got {min_impact_pct}")

    measured = []
    unmeasured = []
    for f in findings:
        if f.estimated_impact_pct is None:
            unmeasured.append(f)
        elif f.estimated_impact_pct >= min_impact_pct:
            measured.append(f)

    measured.sort(key=lambda f: f.estimated_impact_pct, reverse=True)
    dropped = len(findings) - len(measured) - len(unmeasured)
    if dropped:
        logger.debug(f"Dropped {dropped} findings below {min_impact_pct}% impact")
    return measured + unmeasured
