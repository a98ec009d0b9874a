"""Candidate models: one aggregated query pattern per fingerprint per window."""

from enum import Enum

from pydantic import BaseModel, Field

from query_radar_models.execution import QueryOrigin, QuerySource


class CandidateStatus(str, Enum):
    """Workflow status. Only the surrounding UI moves a candidate along."""

    NEW = "NEW"
    WATCHING = "WATCHING"
    DISMISSED = "DISMISSED"
    DRAFTED = "DRAFTED"
    VALIDATED = "VALIDATED"
    APPROVED = "APPROVED"


class FlagKind(str, Enum):
    """Closed set of performance flags a candidate can carry."""

    LONG_RUNNING = "LongRunning"
    HIGH_SPILL = "HighSpill"
    HIGH_SHUFFLE = "HighShuffle"
    LOW_CACHE_HIT = "LowCacheHit"
    LOW_PRUNING = "LowPruning"
    HIGH_QUEUE_TIME = "HighQueueTime"
    HIGH_COMPILE_TIME = "HighCompileTime"
    FREQUENT_PATTERN = "FrequentPattern"
    CACHE_MISS = "CacheMiss"
    LARGE_WRITE = "LargeWrite"
    EXPLODING_JOIN = "ExplodingJoin"
    FILTERING_JOIN = "FilteringJoin"
    HIGH_QUEUE_RATIO = "HighQueueRatio"
    COLD_QUERY = "ColdQuery"
    COMPILATION_HEAVY = "CompilationHeavy"
    MATERIALIZED_VIEW_CANDIDATE = "MaterializedViewCandidate"


class FlagSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class PerformanceFlagFinding(BaseModel):
    """A named, threshold-triggered issue on a candidate."""

    flag: FlagKind
    label: str = Field(..., description="Short display label")
    severity: FlagSeverity = Field(default=FlagSeverity.WARNING)
    detail: str = Field(..., description="Human-readable explanation and advice")
    estimated_impact_pct: int | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Share of total task time (or I/O) this issue accounts for; None if unknown",
    )


class ScoreBreakdown(BaseModel):
    """The five 0-100 factors behind an impact score."""

    runtime: int = Field(default=0, ge=0, le=100)
    frequency: int = Field(default=0, ge=0, le=100)
    waste: int = Field(default=0, ge=0, le=100)
    capacity: int = Field(default=0, ge=0, le=100)
    quickwin: int = Field(default=0, ge=0, le=100)


class WindowStats(BaseModel):
    """Aggregate statistics over every execution folded into a candidate."""

    count: int = Field(default=0, description="Executions folded into this candidate")
    p50_ms: float = Field(default=0)
    p95_ms: float = Field(default=0)
    total_duration_ms: float = Field(default=0)
    total_read_bytes: int = Field(default=0)
    total_spilled_bytes: int = Field(default=0)
    cache_hit_rate: float = Field(default=0, description="Fraction served from result cache")
    total_shuffle_bytes: int = Field(default=0)
    total_written_bytes: int = Field(default=0)
    total_read_rows: int = Field(default=0)
    total_produced_rows: int = Field(default=0)
    avg_pruning_efficiency: float = Field(default=0, description="0-1, higher is better")
    avg_task_parallelism: float = Field(default=0, description="Task time / wall time")
    avg_compilation_ms: float = Field(default=0)
    avg_queue_wait_ms: float = Field(default=0)
    avg_compute_wait_ms: float = Field(default=0)
    avg_execution_ms: float = Field(default=0)
    avg_fetch_ms: float = Field(default=0)
    avg_io_cache_percent: float = Field(default=0)


class DbtMeta(BaseModel):
    """dbt metadata recovered from the sample statement."""

    is_dbt: bool = Field(default=False)
    node_id: str | None = Field(default=None, description="dbt node id, e.g. model.proj.orders")
    query_tag: str | None = Field(default=None, description="QUERY_TAG comment value")


class Candidate(BaseModel):
    """An aggregated query pattern with statistics, score and flags."""

    fingerprint: str = Field(..., description="Stable id of the logical query shape")

    # Representative sample (slowest execution)
    sample_statement_id: str
    sample_started_at: str | None = Field(default=None, description="ISO timestamp")
    sample_query_text: str = Field(default="")
    sample_executed_by: str = Field(default="Unknown")

    # Dominant dimensions (most frequent across executions)
    warehouse_id: str
    warehouse_name: str
    workspace_id: str = Field(default="unknown")
    workspace_name: str = Field(default="unknown")
    workspace_url: str = Field(default="")
    query_origin: QueryOrigin = Field(default=QueryOrigin.UNKNOWN)
    query_source: QuerySource = Field(default_factory=QuerySource)
    statement_type: str = Field(default="SELECT")
    client_application: str = Field(default="Unknown")

    top_users: list[str] = Field(default_factory=list, description="Up to 3 most frequent users")
    unique_user_count: int = Field(default=0)

    impact_score: int = Field(default=0, ge=0, le=100)
    score_breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    window_stats: WindowStats = Field(default_factory=WindowStats)

    failed_count: int = Field(default=0)
    canceled_count: int = Field(default=0)
    allocated_cost_dollars: float = Field(default=0, description="Proportional share of warehouse $")
    allocated_dbus: float = Field(default=0, description="Proportional share of warehouse DBUs")

    performance_flags: list[PerformanceFlagFinding] = Field(default_factory=list)
    dbt_meta: DbtMeta = Field(default_factory=DbtMeta)
    tags: list[str] = Field(default_factory=list)
    status: CandidateStatus = Field(default=CandidateStatus.NEW)
