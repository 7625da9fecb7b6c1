"""
postboard.api.app

FastAPI app factory for the post board service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Build, start and shut down the telemetry core (local sink + Loki channel).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from postboard.api.routers.health import router as health_router
from postboard.observability.logging import configure_logging, get_logger
from postboard.observability.middleware import RequestContextMiddleware
from postboard.observability.telemetry import Telemetry
from postboard.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    export_transport: httpx.BaseTransport | None = None,
) -> FastAPI:
    # Fails fast (LocalSinkUnavailableError) if the log directory can't be created.
    telemetry = Telemetry.from_settings(settings, transport=export_transport)

    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(
        service_name=settings.project_name,
        level=settings.log_level,
        runtime=telemetry.runtime,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        telemetry.start()
        log.info("startup", env=settings.env, sampling_ratio=settings.sampling_ratio)
        try:
            yield
        finally:
            # Drains both sinks (queued local writes, pending Loki pushes).
            telemetry.shutdown()
            log.info("shutdown")

    app = FastAPI(
        title="Post Board",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.telemetry = telemetry

    app.add_middleware(RequestContextMiddleware, runtime=telemetry.runtime)
    app.include_router(health_router, tags=["health"])

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; handlers reach the telemetry core through
# `api.deps.telemetry_dep`.
