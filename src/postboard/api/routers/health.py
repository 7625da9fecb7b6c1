"""
postboard.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) that exercises the telemetry path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from postboard.api.deps import telemetry_dep
from postboard.observability.emitter import CorrelatedLogger
from postboard.observability.telemetry import Telemetry

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    # Liveness: process is up and serving HTTP.
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(telemetry: Telemetry = Depends(telemetry_dep)) -> dict[str, str]:
    async def check(logger: CorrelatedLogger) -> dict[str, str]:
        logger.debug("readiness probe", {"sink": str(telemetry.local.path)})
        return {"status": "ready"}

    # Readiness: runs inside the request span, so the probe's lifecycle logs share its trace.
    return await telemetry.with_span("readiness check", check)


# --- Module Notes -----------------------------------------------------------
# Kubernetes typically uses /healthz for liveness and /readyz for readiness gating.
