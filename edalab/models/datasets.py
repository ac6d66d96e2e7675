from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DatasetEntry(BaseModel):
    name: str
    package: str
    title: str
    # categorical columns with their level order
    factors: Dict[str, List[str]] = Field(default_factory=dict)


class DatasetListResponse(BaseModel):
    count: int
    datasets: List[DatasetEntry]


class ColumnProfile(BaseModel):
    name: str
    dtype: str
    role: str
    missing_pct: float = 0.0
    unique_count: Optional[int] = None


class DatasetProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    n_rows: int
    n_cols: int
    # serialised as "schema"
    column_schema: List[ColumnProfile] = Field(default_factory=list, alias="schema")

    # Small sample for UI preview
    sample_rows: List[Dict[str, Any]] = Field(default_factory=list)


class DatasetSummary(BaseModel):
    name: str
    # column -> summary lines ("Min.   : 0.2", "Fair: 1610", ...)
    columns: Dict[str, List[str]]
