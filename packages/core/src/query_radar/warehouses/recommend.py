"""Warehouse sizing recommendations.

Each warehouse gets exactly one recommendation from a priority chain of
rules. A rule is a function of the evaluation context that returns a
``_Fragment`` when it applies, or ``None`` to pass to the next rule:

    1.  sustained cold starts, not serverless   -> serverless
    2.  sustained spill + sustained queue       -> upsize and scale
    3.  sustained spill                         -> upsize
    4.  sustained capacity queue                -> add clusters
    4b. queue time dominates execution time     -> add clusters
    5.  low pressure, enough traffic            -> downsize
    6.  cold starts with a short auto-stop      -> increase auto-stop
    7.  low pressure with a long auto-stop      -> decrease auto-stop
    8.  anything else                           -> no change

The first rule that matches decides. When rule 4b or 5 matches but has
nothing to change (clusters already at the cap, size already the
smallest), the warehouse gets no change. Rule 8 always applies.
"""

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from query_radar_models import (
    ConfidenceLevel,
    RecommendationSeverity,
    WarehouseAction,
    WarehouseHealthMetrics,
    WarehouseRecommendation,
)

from query_radar.config import DEFAULT_RECOMMENDATION_THRESHOLDS, RecommendationThresholds
from query_radar.errors import require_non_negative
from query_radar.warehouses.sizes import (
    estimate_cost_for_clusters,
    estimate_cost_for_size,
    next_size,
    prev_size,
    size_multiplier,
)

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7
MINUTES_PER_DAY = 24 * 60

# Runtime assumed when estimating cold-start victims with no runtime data
_FALLBACK_RUNTIME_SEC = 10

_SEVERITY_RANK = {
    RecommendationSeverity.CRITICAL: 0,
    RecommendationSeverity.WARNING: 1,
    RecommendationSeverity.INFO: 2,
    RecommendationSeverity.HEALTHY: 3,
}


@dataclass
class _Context:
    """Everything a rule needs to decide, computed once per warehouse."""

    m: WarehouseHealthMetrics
    thr: RecommendationThresholds
    confidence: ConfidenceLevel
    confidence_reason: str
    high_spill: bool
    high_queue: bool
    high_cold_start: bool
    low_pressure: bool
    queue_ratio: float
    serverless_cost: float | None

    @property
    def pressure_severity(self) -> RecommendationSeverity:
        if self.confidence == ConfidenceLevel.HIGH:
            return RecommendationSeverity.CRITICAL
        return RecommendationSeverity.WARNING


@dataclass
class _Fragment:
    action: WarehouseAction
    severity: RecommendationSeverity
    headline: str
    rationale: list[str] = field(default_factory=list)
    new_cost: float | None = None
    target_size: str | None = None
    target_max_clusters: int | None = None
    target_auto_stop: int | None = None


Rule = Callable[[_Context], _Fragment | None]


# =============================================================================
# Confidence and pressure
# =============================================================================


def resolve_confidence(
    days_with_spill: int,
    days_with_capacity_queue: int,
    days_with_cold_start: int,
    total_queries: int,
    thresholds: RecommendationThresholds | None = None,
) -> tuple[ConfidenceLevel, str]:
    """Confidence from how many days the worst metric was under pressure."""
    thr = thresholds or DEFAULT_RECOMMENDATION_THRESHOLDS
    max_days = max(days_with_spill, days_with_capacity_queue, days_with_cold_start)

    if max_days >= thr.high_confidence_days and total_queries >= thr.high_confidence_min_queries:
        return (
            ConfidenceLevel.HIGH,
            f"Sustained pattern across {max_days}/{WINDOW_DAYS} days, "
            f"based on {total_queries:,} queries",
        )
    if max_days >= thr.medium_confidence_days:
        return (
            ConfidenceLevel.MEDIUM,
            f"Pattern seen on {max_days}/{WINDOW_DAYS} days ({total_queries:,} queries)",
        )
    if max_days >= 1:
        return (
            ConfidenceLevel.LOW,
            f"Intermittent: seen on only {max_days}/{WINDOW_DAYS} days, "
            "may be an isolated spike",
        )
    return ConfidenceLevel.LOW, "No sustained pattern detected"


def _active_minutes(m: WarehouseHealthMetrics) -> float:
    """Query-minutes of execution across the window."""
    if m.total_queries <= 0:
        return 0
    return m.avg_runtime_sec * m.total_queries / 60


def _queue_ratio(m: WarehouseHealthMetrics) -> float:
    active = _active_minutes(m)
    if active <= 0 or m.total_capacity_queue_min <= 0:
        return 0
    return m.total_capacity_queue_min / active


def _idle_cost_per_minute(m: WarehouseHealthMetrics) -> float:
    if m.weekly_cost_dollars <= 0 or m.active_days <= 0:
        return 0
    return m.weekly_cost_dollars / (m.active_days * MINUTES_PER_DAY)


def _build_context(
    m: WarehouseHealthMetrics,
    thr: RecommendationThresholds,
    serverless_unit_price: float | None,
) -> _Context:
    confidence, reason = resolve_confidence(
        m.days_with_spill, m.days_with_capacity_queue, m.days_with_cold_start, m.total_queries, thr
    )
    serverless_cost = None
    if serverless_unit_price is not None:
        require_non_negative(serverless_unit_price, "serverless_unit_price")
    if serverless_unit_price and not m.is_serverless and m.weekly_dbus > 0:
        serverless_cost = m.weekly_dbus * serverless_unit_price

    return _Context(
        m=m,
        thr=thr,
        confidence=confidence,
        confidence_reason=reason,
        high_spill=(
            m.total_spill_gib >= thr.spill_gib_week and m.days_with_spill >= thr.sustained_days
        ),
        high_queue=(
            m.total_capacity_queue_min >= thr.capacity_queue_min_week
            and m.days_with_capacity_queue >= thr.sustained_days
        ),
        high_cold_start=(
            m.total_cold_start_min >= thr.cold_start_min_week
            and m.days_with_cold_start >= thr.sustained_days
        ),
        low_pressure=(
            m.total_spill_gib <= thr.low_spill_gib
            and m.total_capacity_queue_min <= thr.low_capacity_queue_min
            and m.total_capacity_queue_min + m.total_cold_start_min <= thr.low_total_queue_min
        ),
        queue_ratio=_queue_ratio(m),
        serverless_cost=serverless_cost,
    )


def _proposed_clusters(ctx: _Context) -> int:
    return min(ctx.m.max_clusters + ctx.thr.cluster_step, ctx.thr.max_clusters_cap)


def _spill_line(m: WarehouseHealthMetrics) -> str:
    return f"Spill: {m.total_spill_gib:.1f} GiB over 7 days ({m.days_with_spill}/7 days)"


def _queue_line(m: WarehouseHealthMetrics) -> str:
    return (
        f"Queue: {m.total_capacity_queue_min:.1f} min capacity wait "
        f"({m.days_with_capacity_queue}/7 days)"
    )


# =============================================================================
# Rules
# =============================================================================


def serverless_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    if not ctx.high_cold_start or m.is_serverless:
        return None
    runtime = m.avg_runtime_sec or _FALLBACK_RUNTIME_SEC
    affected = math.floor(m.total_cold_start_min * 60 / runtime + 0.5)
    lines = [
        f"{m.total_cold_start_min:.1f} min of cold start wait over 7 days "
        f"({m.days_with_cold_start}/7 days).",
        "Serverless SQL eliminates cold starts: instant start, no idle cost, elastic scaling.",
        f"Estimated {affected} queries affected by cold starts weekly.",
    ]
    if m.auto_stop_minutes < ctx.thr.low_autostop_min:
        lines.append(
            f"Current auto-stop is {m.auto_stop_minutes} min which causes frequent restarts. "
            "Serverless eliminates this trade-off."
        )
    if ctx.serverless_cost is not None:
        lines.append(
            f"Estimated serverless cost: ${ctx.serverless_cost:.2f}/wk "
            f"vs current ${m.weekly_cost_dollars:.2f}/wk."
        )
    return _Fragment(
        action=WarehouseAction.SERVERLESS,
        severity=ctx.pressure_severity,
        headline="Switch to Serverless",
        rationale=lines,
        new_cost=ctx.serverless_cost,
    )


def spill_and_queue_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    if not (ctx.high_spill and ctx.high_queue):
        return None
    target = next_size(m.size)
    clusters = _proposed_clusters(ctx)
    can_add = clusters > m.max_clusters

    if target and can_add:
        cost = estimate_cost_for_size(m.weekly_cost_dollars, m.size, target)
        return _Fragment(
            action=WarehouseAction.UPSIZE_AND_SCALE,
            severity=ctx.pressure_severity,
            headline=f"Upsize to {target} + scale to {clusters} clusters",
            rationale=[
                f"{_spill_line(m)}. Queries exceed available memory.",
                f"{_queue_line(m)}. Not enough compute slots.",
                "Recommend both a larger size for memory and more clusters for concurrency.",
            ],
            new_cost=estimate_cost_for_clusters(cost, m.max_clusters, clusters),
            target_size=target,
            target_max_clusters=clusters,
        )
    if target:
        return _Fragment(
            action=WarehouseAction.UPSIZE,
            severity=ctx.pressure_severity,
            headline=f"Upsize to {target}",
            rationale=[
                f"{_spill_line(m)}. Queries exceed available memory.",
                f"{_queue_line(m)}.",
                f"Clusters already at max ({m.max_clusters}). "
                "Upsizing doubles memory which may also reduce queue pressure.",
            ],
            new_cost=estimate_cost_for_size(m.weekly_cost_dollars, m.size, target),
            target_size=target,
        )
    if can_add:
        return _Fragment(
            action=WarehouseAction.ADD_CLUSTERS,
            severity=ctx.pressure_severity,
            headline=f"Increase max clusters to {clusters}",
            rationale=[
                f"{_spill_line(m)}.",
                f"{_queue_line(m)}.",
                "Already at max size; adding clusters improves concurrency. "
                "Consider query-level optimisation for spill.",
            ],
            new_cost=estimate_cost_for_clusters(m.weekly_cost_dollars, m.max_clusters, clusters),
            target_max_clusters=clusters,
        )
    return _Fragment(
        action=WarehouseAction.UPSIZE_AND_SCALE,
        severity=ctx.pressure_severity,
        headline="At max config: optimise queries or switch to Serverless",
        rationale=[
            f"{_spill_line(m)}. Queries exceed available memory.",
            f"{_queue_line(m)}.",
            f"Warehouse is already at maximum size ({m.size}) "
            f"and max clusters ({m.max_clusters}).",
            "Consider query-level optimisation to reduce spill, scheduling heavy workloads "
            "off-peak, or migrating to Serverless SQL.",
        ],
    )


def spill_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    if not ctx.high_spill:
        return None
    target = next_size(m.size)
    if target:
        return _Fragment(
            action=WarehouseAction.UPSIZE,
            severity=ctx.pressure_severity,
            headline=f"Upsize to {target}",
            rationale=[
                f"{_spill_line(m)}.",
                "Queries are spilling to disk because the warehouse memory is insufficient.",
                f"A {target} warehouse provides double the memory, reducing or eliminating spill.",
            ],
            new_cost=estimate_cost_for_size(m.weekly_cost_dollars, m.size, target),
            target_size=target,
        )
    return _Fragment(
        action=WarehouseAction.UPSIZE,
        severity=ctx.pressure_severity,
        headline="Already max size: optimise queries",
        rationale=[
            f"{_spill_line(m)}.",
            "Queries are spilling to disk but the warehouse is already at maximum size "
            f"({m.size}).",
            "Focus on query-level optimisation: add Liquid Clustering, reduce data scanned, "
            "or materialise intermediate results.",
        ],
    )


def queue_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    if not ctx.high_queue:
        return None
    clusters = _proposed_clusters(ctx)
    if clusters > m.max_clusters:
        return _Fragment(
            action=WarehouseAction.ADD_CLUSTERS,
            severity=ctx.pressure_severity,
            headline=f"Increase max clusters to {clusters}",
            rationale=[
                f"{_queue_line(m)}.",
                "Queries are waiting for available compute slots.",
                "Adding clusters increases concurrency and reduces queue time.",
            ],
            new_cost=estimate_cost_for_clusters(m.weekly_cost_dollars, m.max_clusters, clusters),
            target_max_clusters=clusters,
        )
    return _Fragment(
        action=WarehouseAction.ADD_CLUSTERS,
        severity=ctx.pressure_severity,
        headline="At max clusters: optimise queries or stagger workloads",
        rationale=[
            f"{_queue_line(m)}.",
            "Queries are waiting for compute slots but clusters are already at maximum "
            f"({m.max_clusters}).",
            "Consider optimising slow queries to free slots faster, scheduling heavy workloads "
            "off-peak, or migrating to Serverless SQL for elastic scaling.",
        ],
    )


def queue_ratio_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    thr = ctx.thr
    if (
        ctx.queue_ratio <= thr.queue_ratio
        or m.total_queries < thr.queue_ratio_min_queries
        or ctx.high_spill
    ):
        return None
    clusters = _proposed_clusters(ctx)
    if clusters <= m.max_clusters:
        return no_change_rule(ctx)
    lines = [
        f"Queries spend {math.floor(ctx.queue_ratio * 100 + 0.5)}% of their processing time "
        "waiting in queue.",
        f"Even though absolute queue time ({m.total_capacity_queue_min:.1f} min) is moderate, "
        "the ratio to execution time indicates a concurrency bottleneck.",
        "Adding clusters increases parallelism and reduces per-query queue wait.",
    ]
    if not m.is_serverless:
        lines.append("Consider Serverless SQL for elastic scaling that auto-adjusts to demand.")
    return _Fragment(
        action=WarehouseAction.ADD_CLUSTERS,
        severity=RecommendationSeverity.WARNING,
        headline=f"Increase max clusters to {clusters}",
        rationale=lines,
        new_cost=estimate_cost_for_clusters(m.weekly_cost_dollars, m.max_clusters, clusters),
        target_max_clusters=clusters,
    )


def downsize_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    thr = ctx.thr
    if (
        not ctx.low_pressure
        or m.active_days < thr.downsize_min_active_days
        or m.total_queries < thr.downsize_min_queries
    ):
        return None
    target = prev_size(m.size)
    if not target:
        return no_change_rule(ctx)
    saving = math.floor((1 - size_multiplier(target) / size_multiplier(m.size)) * 100 + 0.5)
    return _Fragment(
        action=WarehouseAction.DOWNSIZE,
        severity=RecommendationSeverity.INFO,
        headline=f"Downsize to {target}",
        rationale=[
            f"This warehouse has minimal pressure: {m.total_spill_gib:.2f} GiB spill, "
            f"{m.total_capacity_queue_min:.1f} min queue over 7 days.",
            f"A smaller size could save ~{saving}% on compute cost.",
        ],
        new_cost=estimate_cost_for_size(m.weekly_cost_dollars, m.size, target),
        target_size=target,
    )


def increase_autostop_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    thr = ctx.thr
    if (
        m.total_cold_start_min <= thr.cold_start_min_for_autostop
        or m.auto_stop_minutes >= thr.low_autostop_min
    ):
        return None
    target = min(m.auto_stop_minutes + thr.autostop_increase_step, thr.autostop_increase_cap)
    extra_cost = (target - m.auto_stop_minutes) * m.active_days * _idle_cost_per_minute(m)
    lines = [
        f"Cold start wait: {m.total_cold_start_min:.1f} min over 7 days "
        f"({m.days_with_cold_start}/7 days).",
        f"Current auto-stop is {m.auto_stop_minutes} min, so the warehouse stops frequently "
        "and users wait for it to restart.",
        "Increasing auto-stop keeps it warm longer, reducing cold start impact.",
        f"Trade-off: ~${extra_cost:.2f}/wk extra idle cost vs "
        f"{m.total_cold_start_min:.1f} min of cold start wait saved.",
    ]
    if not m.is_serverless:
        lines.append(
            "Alternative: switch to Serverless SQL to eliminate cold starts without idle cost."
        )
    return _Fragment(
        action=WarehouseAction.INCREASE_AUTOSTOP,
        severity=RecommendationSeverity.WARNING,
        headline=f"Increase auto-stop to {target} min",
        rationale=lines,
        target_auto_stop=target,
    )


def decrease_autostop_rule(ctx: _Context) -> _Fragment | None:
    m = ctx.m
    thr = ctx.thr
    if not ctx.low_pressure or m.auto_stop_minutes <= thr.high_autostop_min:
        return None
    target = max(m.auto_stop_minutes - thr.autostop_decrease_step, thr.autostop_decrease_floor)
    saved_cost = (m.auto_stop_minutes - target) * m.active_days * _idle_cost_per_minute(m)
    return _Fragment(
        action=WarehouseAction.DECREASE_AUTOSTOP,
        severity=RecommendationSeverity.INFO,
        headline=f"Decrease auto-stop to {target} min",
        rationale=[
            f"Low utilisation with auto-stop at {m.auto_stop_minutes} min.",
            f"Reducing to {target} min saves ~${saved_cost:.2f}/wk in idle compute costs.",
            f"With only {m.total_spill_gib:.2f} GiB spill and "
            f"{m.total_capacity_queue_min:.1f} min queue, occasional cold starts from the "
            "shorter auto-stop won't materially impact users.",
        ],
        target_auto_stop=target,
    )


def no_change_rule(ctx: _Context) -> _Fragment:
    return _Fragment(
        action=WarehouseAction.NO_CHANGE,
        severity=RecommendationSeverity.HEALTHY,
        headline="Warehouse is healthy",
        rationale=["No performance issues detected over the past 7 days."],
    )


RULES: list[Rule] = [
    serverless_rule,
    spill_and_queue_rule,
    spill_rule,
    queue_rule,
    queue_ratio_rule,
    downsize_rule,
    increase_autostop_rule,
    decrease_autostop_rule,
    no_change_rule,
]


# =============================================================================
# Public API
# =============================================================================


def recommend_one(
    m: WarehouseHealthMetrics,
    serverless_unit_price: float | None = None,
    thresholds: RecommendationThresholds | None = None,
) -> WarehouseRecommendation:
    """Run the rule chain for one warehouse."""
    thr = thresholds or DEFAULT_RECOMMENDATION_THRESHOLDS
    ctx = _build_context(m, thr, serverless_unit_price)

    fragment = next(f for f in (rule(ctx) for rule in RULES) if f is not None)

    current = m.weekly_cost_dollars
    new_cost = fragment.new_cost if fragment.new_cost is not None else current
    delta = new_cost - current

    wasted_minutes = m.total_capacity_queue_min + m.total_cold_start_min
    active = _active_minutes(m)
    wasted_cost = 0.0
    if active > 0 and current > 0:
        wasted_cost = wasted_minutes * (current / (active + wasted_minutes))

    serverless_savings = None
    cold_start_saved = None
    if ctx.serverless_cost is not None:
        serverless_savings = current - ctx.serverless_cost
        cold_start_saved = m.total_cold_start_min

    logger.debug(f"{m.warehouse_id}: {fragment.action.value} ({ctx.confidence.value})")

    return WarehouseRecommendation(
        metrics=m,
        action=fragment.action,
        severity=fragment.severity,
        headline=fragment.headline,
        rationale="\n".join(fragment.rationale),
        confidence=ctx.confidence,
        confidence_reason=ctx.confidence_reason,
        current_weekly_cost=current,
        estimated_new_weekly_cost=new_cost,
        cost_delta=delta,
        cost_delta_percent=delta / current * 100 if current > 0 else 0,
        wasted_queue_minutes=wasted_minutes,
        wasted_queue_cost_estimate=wasted_cost,
        target_size=fragment.target_size,
        target_max_clusters=fragment.target_max_clusters,
        target_auto_stop=fragment.target_auto_stop,
        serverless_cost_estimate=ctx.serverless_cost,
        serverless_savings=serverless_savings,
        cold_start_minutes_saved=cold_start_saved,
    )


def generate_recommendations(
    metrics: Iterable[WarehouseHealthMetrics],
    serverless_unit_price: float | None = None,
    thresholds: RecommendationThresholds | None = None,
) -> list[WarehouseRecommendation]:
    """One recommendation per warehouse, in the order the metrics were given.

    Args:
        metrics: Health metrics from ``aggregate_by_warehouse``
        serverless_unit_price: $/DBU for serverless SQL; enables the serverless
            comparison when set
        thresholds: Recommendation thresholds; defaults apply when omitted
    """
    if serverless_unit_price is not None:
        require_non_negative(serverless_unit_price, "serverless_unit_price")
    results = [recommend_one(m, serverless_unit_price, thresholds) for m in metrics]
    logger.info(f"Generated {len(results)} warehouse recommendations")
    return results


def rank_recommendations(
    recommendations: Iterable[WarehouseRecommendation],
) -> list[WarehouseRecommendation]:
    """Most severe first; ties by wasted queue cost, then current weekly cost."""
    return sorted(
        recommendations,
        key=lambda r: (
            _SEVERITY_RANK[r.severity],
            -r.wasted_queue_cost_estimate,
            -r.current_weekly_cost,
        ),
    )
