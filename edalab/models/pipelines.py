from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class PipelineStep(BaseModel):
    op: str
    args: Dict[str, Any] = Field(default_factory=dict)


class PipelineRequest(BaseModel):
    steps: List[PipelineStep] = Field(default_factory=list)
    limit: Optional[int] = None


class QueryResponse(BaseModel):
    columns: List[str]
    data: List[Dict[str, Any]]
    row_count: int
    sql: str
    groups: List[str] = Field(default_factory=list)


class SqlResponse(BaseModel):
    sql: str
    pipeline_hash: str
    groups: List[str] = Field(default_factory=list)
