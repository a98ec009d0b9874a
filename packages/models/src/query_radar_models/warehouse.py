"""Warehouse health models: pre-aggregated inputs, 7-day metrics, recommendations."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from query_radar_models.execution import _drop_nulls

# =============================================================================
# Inputs (pre-aggregated by the data-access layer)
# =============================================================================


class WarehouseConfig(BaseModel):
    """Current warehouse configuration."""

    warehouse_id: str = Field(..., min_length=1)
    name: str = Field(default="", description="Display name; falls back to the id")
    size: str = Field(default="Unknown", description="T-shirt size, e.g. Small, 2X-Large")
    warehouse_type: str = Field(default="Unknown", description="CLASSIC, PRO or SERVERLESS")
    min_clusters: int = Field(default=1)
    max_clusters: int = Field(default=1)
    auto_stop_minutes: int = Field(default=0)

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        data = _drop_nulls(data)
        if isinstance(data, dict) and not data.get("name") and data.get("warehouse_id"):
            data["name"] = data["warehouse_id"]
        return data


class _Row(BaseModel):
    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        return _drop_nulls(data)


class WarehouseDayRow(_Row):
    """One warehouse, one calendar day."""

    warehouse_id: str = Field(..., min_length=1)
    query_date: str = Field(default="", description="YYYY-MM-DD")
    queries: int = Field(default=0)
    unique_users: int = Field(default=0)
    capacity_queue_min: float = Field(default=0)
    cold_start_min: float = Field(default=0)
    spill_gib: float = Field(default=0)
    avg_runtime_sec: float = Field(default=0)
    p95_sec: float = Field(default=0)


class WarehouseUserRow(_Row):
    """Query count per warehouse, user and source."""

    warehouse_id: str = Field(..., min_length=1)
    executed_by: str = Field(default="unknown")
    query_count: int = Field(default=0)
    source_id: str = Field(default="ad-hoc")
    source_type: str = Field(default="ad-hoc", description="dashboard, job, notebook or ad-hoc")


class WarehouseHourRow(_Row):
    """One warehouse, one hour of day, summed over the window."""

    warehouse_id: str = Field(..., min_length=1)
    hour_of_day: int = Field(default=0, ge=0, le=23)
    queries: int = Field(default=0)
    capacity_queue_min: float = Field(default=0)
    cold_start_min: float = Field(default=0)
    spill_gib: float = Field(default=0)
    avg_runtime_sec: float = Field(default=0)


class WarehouseEvent(_Row):
    """A scaling or lifecycle event (RUNNING, STARTING, SCALED_UP, STOPPED, ...)."""

    warehouse_id: str = Field(..., min_length=1)
    event_type: str
    cluster_count: int = Field(default=0)
    event_time: datetime


# =============================================================================
# Derived metrics
# =============================================================================


class DailyBreakdown(BaseModel):
    date: str
    queries: int = 0
    spill_gib: float = 0
    capacity_queue_min: float = 0
    cold_start_min: float = 0


class HourlyActivity(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    queries: int = 0
    capacity_queue_min: float = 0
    cold_start_min: float = 0
    spill_gib: float = 0
    avg_runtime_sec: float = 0


class TopUser(BaseModel):
    name: str
    query_count: int


class TopSource(BaseModel):
    source_id: str
    source_type: str
    query_count: int


class WarehouseHealthMetrics(BaseModel):
    """Aggregated health metrics for one warehouse over a 7-day window."""

    warehouse_id: str
    warehouse_name: str

    # Config
    size: str = Field(default="Unknown")
    warehouse_type: str = Field(default="Unknown")
    min_clusters: int = Field(default=1)
    max_clusters: int = Field(default=1)
    auto_stop_minutes: int = Field(default=0)
    is_serverless: bool = Field(default=False)

    # 7-day totals
    total_queries: int = Field(default=0)
    unique_users: int = Field(default=0)
    total_spill_gib: float = Field(default=0)
    total_capacity_queue_min: float = Field(default=0)
    total_cold_start_min: float = Field(default=0)
    avg_runtime_sec: float = Field(default=0, description="Query-weighted average runtime")
    p95_sec: float = Field(default=0, description="Worst daily p95")

    # Cost
    weekly_dbus: float = Field(default=0)
    weekly_cost_dollars: float = Field(default=0)

    # Sustained pressure: days over the per-day threshold
    days_with_spill: int = Field(default=0)
    days_with_capacity_queue: int = Field(default=0)
    days_with_cold_start: int = Field(default=0)
    active_days: int = Field(default=0)

    daily_breakdown: list[DailyBreakdown] = Field(default_factory=list)
    hourly_activity: list[HourlyActivity] = Field(
        default_factory=list, description="Dense 0-23 table"
    )
    top_users: list[TopUser] = Field(default_factory=list)
    top_sources: list[TopSource] = Field(default_factory=list)


# =============================================================================
# Recommendations
# =============================================================================


class WarehouseAction(str, Enum):
    UPSIZE = "upsize"
    DOWNSIZE = "downsize"
    ADD_CLUSTERS = "add_clusters"
    UPSIZE_AND_SCALE = "upsize_and_scale"
    SERVERLESS = "serverless"
    INCREASE_AUTOSTOP = "increase_autostop"
    DECREASE_AUTOSTOP = "decrease_autostop"
    NO_CHANGE = "no_change"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
    HEALTHY = "healthy"


class WarehouseRecommendation(BaseModel):
    """Exactly one sizing recommendation for one warehouse."""

    metrics: WarehouseHealthMetrics

    action: WarehouseAction = Field(default=WarehouseAction.NO_CHANGE)
    severity: RecommendationSeverity = Field(default=RecommendationSeverity.HEALTHY)
    headline: str = Field(..., description='e.g. "Upsize to Large"')
    rationale: str = Field(..., description="Multi-line explanation")
    confidence: ConfidenceLevel
    confidence_reason: str

    # Cost impact (weekly, dollars). Positive delta means more expensive.
    current_weekly_cost: float = 0
    estimated_new_weekly_cost: float = 0
    cost_delta: float = 0
    cost_delta_percent: float = 0

    # What doing nothing costs
    wasted_queue_minutes: float = 0
    wasted_queue_cost_estimate: float = 0

    # Target configuration
    target_size: str | None = None
    target_max_clusters: int | None = None
    target_auto_stop: int | None = None

    # Serverless comparison (classic/pro warehouses only)
    serverless_cost_estimate: float | None = None
    serverless_savings: float | None = None
    cold_start_minutes_saved: float | None = None


class WarehouseUtilization(BaseModel):
    """Idle versus active time for one warehouse within a window."""

    warehouse_id: str
    on_time_ms: float = 0
    active_time_ms: float = 0
    idle_time_ms: float = 0
    utilization_percent: int = Field(default=0, ge=0, le=100)
    query_count: int = 0
