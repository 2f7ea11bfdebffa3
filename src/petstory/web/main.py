# src/petstory/web/main.py
"""FastAPI application for the narrative progression service."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from petstory import __version__
from petstory.bootstrap import bootstrap_all, bootstrap_status, is_ready
from petstory.canon.db import dispose_engine
from petstory.core.logging import init_logging
from petstory.web.admin_routes import router as admin_router
from petstory.web.errors import register_error_handlers
from petstory.web.player_routes import router as player_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_logging()
    await bootstrap_all()
    yield
    await dispose_engine()


def create_app(*, run_bootstrap: bool = True) -> FastAPI:
    """Build the application; tests pass ``run_bootstrap=False``."""
    app = FastAPI(
        title="petstory",
        description="Narrative progression engine: story graph, player progress and authoring",
        version=__version__,
        lifespan=lifespan if run_bootstrap else None,
    )
    register_error_handlers(app)
    app.include_router(player_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/ready")
    async def readiness() -> JSONResponse:
        payload = {"ready": is_ready(), "status": bootstrap_status()}
        return JSONResponse(status_code=200 if is_ready() else 503, content=payload)

    return app


app = create_app()
