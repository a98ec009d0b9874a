"""Raw telemetry models: one record per finished, failed or canceled statement."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class QueryOrigin(str, Enum):
    """Human-friendly origin derived from a statement's query source."""

    DASHBOARD = "dashboard"
    NOTEBOOK = "notebook"
    JOB = "job"
    ALERT = "alert"
    SQL_EDITOR = "sql-editor"
    GENIE = "genie"
    UNKNOWN = "unknown"


def _drop_nulls(data: Any) -> Any:
    """Let field defaults apply where the data layer sent explicit nulls."""
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


class QuerySource(BaseModel):
    """Which product surface issued the statement. At most one id is set."""

    dashboard_id: str | None = Field(default=None, description="Dashboard id")
    legacy_dashboard_id: str | None = Field(default=None, description="Legacy dashboard id")
    notebook_id: str | None = Field(default=None, description="Notebook id")
    sql_query_id: str | None = Field(default=None, description="Saved SQL query id")
    alert_id: str | None = Field(default=None, description="Alert id")
    job_id: str | None = Field(default=None, description="Job id")
    genie_space_id: str | None = Field(default=None, description="Genie space id")


class QueryExecution(BaseModel):
    """A single statement execution from the query history.

    Counters the data layer could not supply default to 0; a missing
    warehouse or workspace name falls back to its id.
    """

    statement_id: str = Field(..., min_length=1, description="Unique statement id")
    warehouse_id: str = Field(..., min_length=1, description="Warehouse that ran the statement")
    warehouse_name: str = Field(default="", description="Warehouse display name")
    workspace_id: str = Field(default="unknown", description="Workspace id")
    workspace_name: str = Field(default="", description="Workspace display name")
    workspace_url: str = Field(default="", description="Workspace base URL")

    started_at: datetime | None = Field(default=None, description="Statement start time")
    ended_at: datetime | None = Field(default=None, description="Statement end time")
    status: str = Field(default="FINISHED", description="FINISHED, FAILED or CANCELED")
    executed_by: str = Field(default="Unknown", description="User that ran the statement")
    executed_as: str | None = Field(default=None, description="Run-as principal, if different")

    query_text: str = Field(default="", description="Raw SQL text (may be masked)")
    statement_type: str = Field(default="SELECT", description="SELECT, INSERT, MERGE, ...")
    client_application: str = Field(default="Unknown", description="Client application name")
    query_source: QuerySource = Field(default_factory=QuerySource)

    # Phase durations (ms)
    duration_ms: float = Field(default=0, description="Wall-clock duration")
    compilation_duration_ms: float = Field(default=0)
    waiting_at_capacity_duration_ms: float = Field(
        default=0, description="Time queued because the warehouse was at capacity"
    )
    waiting_for_compute_duration_ms: float = Field(
        default=0, description="Time waiting for compute to start"
    )
    execution_duration_ms: float = Field(default=0)
    result_fetch_duration_ms: float = Field(default=0)
    total_task_duration_ms: float = Field(
        default=0, description="Summed task time across all executors"
    )

    # Volumes
    read_bytes: int = Field(default=0)
    read_rows: int = Field(default=0)
    produced_rows: int = Field(default=0)
    spilled_local_bytes: int = Field(default=0)
    shuffle_read_bytes: int = Field(default=0)
    written_bytes: int = Field(default=0)
    read_files: int = Field(default=0)
    pruned_files: int = Field(default=0)

    # Caching
    from_result_cache: bool = Field(default=False, description="Served from the result cache")
    read_io_cache_percent: float = Field(
        default=0, description="Share of reads served from the disk cache"
    )

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        data = _drop_nulls(data)
        if isinstance(data, dict):
            if not data.get("warehouse_name") and data.get("warehouse_id"):
                data["warehouse_name"] = data["warehouse_id"]
            if not data.get("workspace_name"):
                data["workspace_name"] = data.get("workspace_id") or "unknown"
        return data


class WarehouseCost(BaseModel):
    """DBU and dollar cost for one warehouse/SKU in the analysis window."""

    warehouse_id: str = Field(..., min_length=1)
    sku_name: str = Field(default="")
    is_serverless: bool = Field(default=False)
    total_dbus: float = Field(default=0, description="DBUs consumed in the window")
    total_dollars: float = Field(default=0, description="DBUs priced at list price")

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        return _drop_nulls(data)
