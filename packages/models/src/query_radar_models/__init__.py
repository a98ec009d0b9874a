"""Shared Pydantic models for query-radar."""

from query_radar_models.candidate import (
    Candidate,
    CandidateStatus,
    DbtMeta,
    FlagKind,
    FlagSeverity,
    PerformanceFlagFinding,
    ScoreBreakdown,
    WindowStats,
)
from query_radar_models.execution import (
    QueryExecution,
    QueryOrigin,
    QuerySource,
    WarehouseCost,
)
from query_radar_models.tables import FlagTableContext, TableInfo
from query_radar_models.warehouse import (
    ConfidenceLevel,
    DailyBreakdown,
    HourlyActivity,
    RecommendationSeverity,
    TopSource,
    TopUser,
    WarehouseAction,
    WarehouseConfig,
    WarehouseDayRow,
    WarehouseEvent,
    WarehouseHealthMetrics,
    WarehouseHourRow,
    WarehouseRecommendation,
    WarehouseUserRow,
    WarehouseUtilization,
)

__version__ = "0.1.0"

__all__ = [
    # Telemetry
    "QueryExecution",
    "QuerySource",
    "QueryOrigin",
    "WarehouseCost",
    # Candidates
    "Candidate",
    "CandidateStatus",
    "WindowStats",
    "ScoreBreakdown",
    "DbtMeta",
    # Flags
    "PerformanceFlagFinding",
    "FlagKind",
    "FlagSeverity",
    # Tables
    "TableInfo",
    "FlagTableContext",
    # Warehouse inputs
    "WarehouseConfig",
    "WarehouseDayRow",
    "WarehouseUserRow",
    "WarehouseHourRow",
    "WarehouseEvent",
    # Warehouse health
    "WarehouseHealthMetrics",
    "DailyBreakdown",
    "HourlyActivity",
    "TopUser",
    "TopSource",
    "WarehouseUtilization",
    # Recommendations
    "WarehouseRecommendation",
    "WarehouseAction",
    "ConfidenceLevel",
    "RecommendationSeverity",
]
