from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from edalab.datasets import UnknownDatasetError
from edalab.models.datasets import DatasetListResponse, DatasetProfile, DatasetSummary
from edalab.services import dataset_service

router = APIRouter()


@router.get("", response_model=DatasetListResponse)
async def list_datasets():
    items = dataset_service.catalog()
    return DatasetListResponse(count=len(items), datasets=items)


@router.get("/{name}/profile", response_model=DatasetProfile)
async def get_profile(name: str, sample_limit: int = Query(20, ge=0, le=1000)):
    try:
        return DatasetProfile(**dataset_service.profile(name, sample_limit=sample_limit))
    except UnknownDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{name}/summary", response_model=DatasetSummary)
async def get_summary(name: str):
    try:
        return DatasetSummary(**dataset_service.summarize_dataset(name))
    except UnknownDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e))
