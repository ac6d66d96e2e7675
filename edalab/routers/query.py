from __future__ import annotations

import duckdb
from fastapi import APIRouter, HTTPException

from edalab.datasets import UnknownDatasetError
from edalab.models.pipelines import PipelineRequest, QueryResponse, SqlResponse
from edalab.services import dataset_service

router = APIRouter()


@router.post("/{name}/query", response_model=QueryResponse)
async def query_dataset(name: str, req: PipelineRequest):
    """Run a verb pipeline against a dataset; rows are clamped to MAX_QUERY_ROWS."""
    try:
        return QueryResponse(**dataset_service.run_query(name, req))
    except UnknownDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValueError, duckdb.Error) as e:
        # ExprError, unknown ops, bad selectors and type errors raised by DuckDB
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{name}/query/sql", response_model=SqlResponse)
async def compile_dataset_query(name: str, req: PipelineRequest):
    """Compile a pipeline to SQL without running it (show_query)."""
    try:
        return SqlResponse(**dataset_service.compile_query(name, req))
    except UnknownDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValueError, duckdb.Error) as e:
        raise HTTPException(status_code=400, detail=str(e))
