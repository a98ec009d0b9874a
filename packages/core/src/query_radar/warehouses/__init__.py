"""Warehouse health: 7-day aggregation, sizing recommendations, utilization."""

from query_radar.warehouses.aggregate import aggregate_by_warehouse
from query_radar.warehouses.recommend import (
    generate_recommendations,
    rank_recommendations,
    recommend_one,
    resolve_confidence,
)
from query_radar.warehouses.sizes import next_size, normalise_size, prev_size, size_multiplier
from query_radar.warehouses.utilization import compute_utilization

__all__ = [
    "aggregate_by_warehouse",
    "generate_recommendations",
    "rank_recommendations",
    "recommend_one",
    "resolve_confidence",
    "next_size",
    "prev_size",
    "normalise_size",
    "size_multiplier",
    "compute_utilization",
]
