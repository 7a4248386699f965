# leadengine/entrypoints/fastapi_app.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from ..db import engine
from ..domain.errors import ProviderError, StoreError
from ..models import Base
from ..service_layer.bootstrap import Container, build_container
from .api.routers import health, jobs, leads, sources

log = logging.getLogger(__name__)


def create_app(container: Container | None = None, *, db_engine: AsyncEngine | None = None) -> FastAPI:
    app = FastAPI(title="LeadHub - Lead Aggregation Engine")
    app.state.container = container or build_container()

    @app.on_event("startup")
    async def _startup() -> None:
        # Single place where DB tables are created in dev.
        async with (db_engine or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.container.close()

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        log.error("store unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Lead store unavailable"})

    @app.exception_handler(ProviderError)
    async def _provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    # Routers
    app.include_router(health.router)
    app.include_router(leads.router)
    app.include_router(sources.router)
    app.include_router(jobs.router)

    return app
