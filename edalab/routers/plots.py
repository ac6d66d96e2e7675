from __future__ import annotations

import duckdb
from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from edalab.datasets import UnknownDatasetError
from edalab.models.plots import PlotRequest
from edalab.services import dataset_service

router = APIRouter()


@router.post("/{name}", response_class=Response, responses={200: {"content": {"image/png": {}}}})
async def plot_dataset(name: str, req: PlotRequest):
    """Apply the pipeline steps, then render the layered plot as a PNG."""
    try:
        png = dataset_service.plot_png(name, req)
    except UnknownDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ValueError, duckdb.Error) as e:
        # PlotSpecError, ExprError, invalid layer parameters and DuckDB binder errors
        raise HTTPException(status_code=400, detail=str(e))
    return Response(content=png, media_type="image/png")
