from fastapi import APIRouter
from edalab.routers import datasets, pipelines, plots, query

api_router = APIRouter()
api_router.include_router(datasets.router, prefix="/datasets", tags=["datasets"])
api_router.include_router(pipelines.router, prefix="/pipelines", tags=["pipelines"])
api_router.include_router(query.router, prefix="/datasets", tags=["query"])
api_router.include_router(plots.router, prefix="/plots", tags=["plots"])
