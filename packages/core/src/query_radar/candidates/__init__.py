"""Impactful query patterns: grouping, scoring and performance flags."""

from query_radar.candidates.builder import build_candidates, derive_origin, percentile
from query_radar.candidates.flags import compute_flags, filter_and_rank_flags
from query_radar.candidates.scoring import ScoreInput, ScoreResult, explain_score, score_candidate

__all__ = [
    "build_candidates",
    "derive_origin",
    "percentile",
    "compute_flags",
    "filter_and_rank_flags",
    "ScoreInput",
    "ScoreResult",
    "score_candidate",
    "explain_score",
]
