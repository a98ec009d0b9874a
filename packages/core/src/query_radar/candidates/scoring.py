"""Candidate scoring model.

Produces an impact score (0-100) with an explainable breakdown of five
factors, each scored 0-100 and then weighted:

    runtime   - how slow is p95?
    frequency - how often does the pattern run?
    waste     - how much spill relative to reads?
    capacity  - how long do executions wait at capacity?
    quickwin  - how much headroom is left in the result cache?

The log-curve constants are empirically tuned; keep them fixed.
"""

import math
from dataclasses import dataclass, field

from query_radar_models import ScoreBreakdown

# Must sum to 1.0
WEIGHTS: dict[str, float] = {
    "runtime": 0.30,
    "frequency": 0.25,
    "waste": 0.20,
    "capacity": 0.15,
    "quickwin": 0.10,
}

_LOG_SCALE = 20
_QUICKWIN_SCALE = 80
_EXPLAIN_MIN_SCORE = 30
_EXPLAIN_MAX_FACTORS = 3

_FACTOR_LABELS: dict[str, str] = {
    "runtime": "Slow p95 execution time",
    "frequency": "Runs frequently",
    "waste": "High spill/shuffle waste",
    "capacity": "Waiting at capacity",
    "quickwin": "Cache optimization opportunity",
}


@dataclass
class ScoreInput:
    """Grouped execution stats the score is computed from."""

    p95_ms: float = 0
    p50_ms: float = 0
    count: int = 0
    total_duration_ms: float = 0
    total_spilled_bytes: float = 0
    total_read_bytes: float = 0
    avg_waiting_at_capacity_ms: float = 0
    cache_hit_rate: float = 0


@dataclass
class ScoreResult:
    impact_score: int
    breakdown: ScoreBreakdown
    tags: list[str] = field(default_factory=list)


def _round(value: float) -> int:
    """Round half up, so x.5 always moves toward +inf."""
    return math.floor(value + 0.5)


def _clamp(value: float, low: float = 0, high: float = 100) -> int:
    return int(max(low, min(high, value)))


def score_runtime(p95_ms: float) -> int:
    """0ms -> 0, 1s -> 14, 10s -> 48, 60s -> 82, 150s+ -> 100."""
    if p95_ms <= 0:
        return 0
    seconds = p95_ms / 1000
    return _clamp(_round(_LOG_SCALE * math.log(seconds + 1)))


def score_frequency(count: int) -> int:
    """1 -> 0, 10 -> 46, 100 -> 92, 150+ -> 100."""
    if count <= 0:
        return 0
    return _clamp(_round(_LOG_SCALE * math.log(count)))


def score_waste(spilled_bytes: float, read_bytes: float) -> int:
    """Spilled bytes as a percentage of bytes read, capped at 100."""
    if read_bytes <= 0 or spilled_bytes <= 0:
        return 0
    return _clamp(_round(spilled_bytes / read_bytes * 100))


def score_capacity(avg_wait_ms: float) -> int:
    """Same log curve as runtime, applied to the average capacity wait."""
    if avg_wait_ms <= 0:
        return 0
    seconds = avg_wait_ms / 1000
    return _clamp(_round(_LOG_SCALE * math.log(seconds + 1)))


def score_quickwin(cache_hit_rate: float) -> int:
    """Fully cached -> 0; never cached -> 80."""
    return _clamp(_round((1 - cache_hit_rate) * _QUICKWIN_SCALE))


def _derive_tags(score_input: ScoreInput, breakdown: ScoreBreakdown) -> list[str]:
    tags = []
    if breakdown.runtime >= 70:
        tags.append("slow")
    if breakdown.frequency >= 60:
        tags.append("frequent")
    if breakdown.waste >= 50:
        tags.append("high-spill")
    if breakdown.capacity >= 50:
        tags.append("capacity-bound")
    if score_input.cache_hit_rate > 0.8:
        tags.append("mostly-cached")
    if breakdown.quickwin >= 60 and score_input.count >= 10:
        tags.append("quick-win")
    return tags


def score_candidate(score_input: ScoreInput) -> ScoreResult:
    """Score a candidate from its grouped execution stats."""
    breakdown = ScoreBreakdown(
        runtime=score_runtime(score_input.p95_ms),
        frequency=score_frequency(score_input.count),
        waste=score_waste(score_input.total_spilled_bytes, score_input.total_read_bytes),
        capacity=score_capacity(score_input.avg_waiting_at_capacity_ms),
        quickwin=score_quickwin(score_input.cache_hit_rate),
    )

    weighted = sum(getattr(breakdown, name) * weight for name, weight in WEIGHTS.items())
    impact_score = _clamp(_round(weighted))

    return ScoreResult(
        impact_score=impact_score,
        breakdown=breakdown,
        tags=_derive_tags(score_input, breakdown),
    )


def explain_score(breakdown: ScoreBreakdown) -> list[str]:
    """Return up to three "why ranked" labels, strongest factor first."""
    factors = [(getattr(breakdown, key), label) for key, label in _FACTOR_LABELS.items()]
    strong = [f for f in factors if f[0] >= _EXPLAIN_MIN_SCORE]
    strong.sort(key=lambda f: f[0], reverse=True)
    return [label for _, label in strong[:_EXPLAIN_MAX_FACTORS]]
