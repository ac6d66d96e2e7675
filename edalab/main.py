from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edalab import __version__
from edalab.api.router import api_router
from edalab.config import settings
from edalab.logging_config import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title="edalab",
        version=__version__,
        description="Sample datasets, dplyr-style pipelines compiled to DuckDB SQL, and ggplot-style figures",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        return {"ok": True, "version": __version__}

    return app


app = create_app()
