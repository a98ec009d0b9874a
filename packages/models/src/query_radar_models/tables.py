"""Optional table metadata used to enrich performance-flag advice."""

from pydantic import BaseModel, Field


class TableInfo(BaseModel):
    """Physical layout facts about one table."""

    table_name: str = Field(..., min_length=1, description="Fully qualified name")
    clustering_columns: list[str] = Field(default_factory=list)
    partition_columns: list[str] = Field(default_factory=list)
    is_managed: bool = Field(default=False)
    predictive_opt_enabled: bool = Field(default=False)
    format: str | None = Field(default=None, description="delta, parquet, ...")
    size_in_bytes: int | None = Field(default=None)
    num_files: int | None = Field(default=None)


class FlagTableContext(BaseModel):
    """Tables referenced by one candidate, keyed by table name."""

    tables: dict[str, TableInfo] = Field(default_factory=dict)
