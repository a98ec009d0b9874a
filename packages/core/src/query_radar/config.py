"""Configuration for query-radar.

Two layers:

- ``Settings``: process-level options loaded from ``QUERY_RADAR_*``
  environment variables or a ``.env`` file.
- ``AnalysisThresholds``: every tunable threshold of the flag and
  recommendation engines, with documented defaults. Callers substitute
  their own instance (or a YAML file via ``load_thresholds``) without
  touching code.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from query_radar.errors import InputFileError

MIB = 1024 * 1024
GIB = 1024 * MIB


class FlagThresholds(BaseModel):
    """Firing thresholds for the performance-flag rules. None may be negative."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    long_running_ms: float = Field(default=30_000, ge=0, description="p95 above this")
    high_spill_bytes: int = Field(default=100 * MIB, ge=0, description="Total spilled above this")
    high_shuffle_bytes: int = Field(
        default=500 * MIB, ge=0, description="Total shuffled above this"
    )
    low_cache_hit_pct: float = Field(default=30, ge=0, description="Avg I/O cache % below this")
    low_pruning_pct: float = Field(
        default=0.3, ge=0, description="Pruning efficiency (0-1) below this"
    )
    high_queue_wait_ms: float = Field(default=5_000, ge=0, description="Avg queue wait above this")
    high_compile_ms: float = Field(default=3_000, ge=0, description="Avg compile time above this")
    frequent_pattern_count: int = Field(default=50, ge=0, description="Execution count above this")
    cache_miss_rate: float = Field(
        default=0.2, ge=0, description="Result cache hit rate below this"
    )
    large_write_bytes: int = Field(default=GIB, ge=0, description="Total written above this")
    exploding_join_ratio: float = Field(
        default=2.0, gt=0, description="produced/read rows above this"
    )
    filtering_join_ratio: float = Field(
        default=10.0, gt=0, description="read/produced rows above this"
    )
    high_queue_ratio_pct: float = Field(
        default=0.5, gt=0, description="queue/execution (0-1) above this"
    )
    cold_query_cache_hit_pct: float = Field(
        default=0.1, ge=0, description="Result cache hit rate below this (cold query)"
    )
    cold_query_io_cache_pct: float = Field(
        default=10, ge=0, description="Avg I/O cache % below this (cold query)"
    )
    compilation_heavy_pct: float = Field(
        default=0.3, gt=0, description="compile/(compile+execute) above this"
    )
    compilation_heavy_min_ms: float = Field(
        default=1_000, ge=0, description="Compilation-heavy only fires above this avg compile time"
    )
    mv_candidate_min_count: int = Field(
        default=50, ge=0, description="Aggregating SELECT run at least this often"
    )
    mv_candidate_cache_hit_rate: float = Field(
        default=0.3, ge=0, description="...with a result cache hit rate below this"
    )


class RecommendationThresholds(BaseModel):
    """Thresholds for warehouse aggregation and the recommendation chain."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # A day is "bad" when its metric exceeds these
    spill_gib_day: float = Field(default=0.5, ge=0)
    capacity_queue_min_day: float = Field(default=2.0, ge=0)
    cold_start_min_day: float = Field(default=1.0, ge=0)

    # Weekly totals needed for sustained pressure
    spill_gib_week: float = Field(default=1.0, ge=0)
    capacity_queue_min_week: float = Field(default=10.0, ge=0)
    cold_start_min_week: float = Field(default=5.0, ge=0)
    sustained_days: int = Field(
        default=3, ge=0, description="Bad days needed for sustained pressure"
    )

    # Confidence
    high_confidence_days: int = Field(default=5, ge=0)
    high_confidence_min_queries: int = Field(default=100, ge=0)
    medium_confidence_days: int = Field(default=3, ge=0)

    # Low pressure (downsize / decrease auto-stop)
    low_spill_gib: float = Field(default=0.1, ge=0)
    low_capacity_queue_min: float = Field(default=1.0, ge=0)
    low_total_queue_min: float = Field(default=1.0, ge=0)
    downsize_min_active_days: int = Field(default=3, ge=0)
    downsize_min_queries: int = Field(default=50, ge=0)

    # Queue-to-execution ratio scaling
    queue_ratio: float = Field(default=0.5, gt=0)
    queue_ratio_min_queries: int = Field(default=50, ge=0)

    # Clusters
    cluster_step: int = Field(default=2, ge=0)
    max_clusters_cap: int = Field(default=10, ge=1)

    # Auto-stop (minutes)
    cold_start_min_for_autostop: float = Field(default=1.0, ge=0)
    low_autostop_min: int = Field(default=5, ge=0)
    high_autostop_min: int = Field(default=30, ge=0)
    autostop_increase_step: int = Field(default=10, ge=0)
    autostop_increase_cap: int = Field(default=30, ge=0)
    autostop_decrease_step: int = Field(default=15, ge=0)
    autostop_decrease_floor: int = Field(default=10, ge=0)


class AnalysisThresholds(BaseModel):
    """All engine thresholds in one overridable object."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    flags: FlagThresholds = Field(default_factory=FlagThresholds)
    recommendations: RecommendationThresholds = Field(default_factory=RecommendationThresholds)


DEFAULT_FLAG_THRESHOLDS = FlagThresholds()
DEFAULT_RECOMMENDATION_THRESHOLDS = RecommendationThresholds()


def load_thresholds(path: str | Path | None) -> AnalysisThresholds:
    """Load thresholds from a YAML file, overriding the defaults.

    The file mirrors ``AnalysisThresholds``::

        flags:
          long_running_ms: 60000
        recommendations:
          sustained_days: 4

    Unknown keys are rejected by validation.
    """
    if not path:
        return AnalysisThresholds()

    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise InputFileError(f"Cannot read thresholds file {path}: {e}") from e

    if data is None:
        return AnalysisThresholds()
    if not isinstance(data, dict):
        raise InputFileError(f"Thresholds file {path} must contain a mapping")
    return AnalysisThresholds.model_validate(data)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="QUERY_RADAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="WARNING", description="Root log level for the CLI")
    thresholds_file: str = Field(
        default="", description="Optional YAML file overriding engine thresholds"
    )
    min_impact_pct: float = Field(
        default=10, ge=0, description="Drop flag findings estimated below this impact"
    )
    serverless_unit_price: float | None = Field(
        default=None, ge=0, description="$/DBU for serverless SQL, if known"
    )
    top_n: int = Field(default=20, ge=0, description="Rows shown by the CLI tables")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
