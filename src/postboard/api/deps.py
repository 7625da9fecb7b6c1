"""
postboard.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Expose the process telemetry core to handlers.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from fastapi import Request

from postboard.observability.telemetry import Telemetry


def telemetry_dep(request: Request) -> Telemetry:
    # Built once in `postboard.api.app.create_app`; handlers log via `.logger` / `.with_span`.
    return request.app.state.telemetry  # type: ignore[attr-defined]


# --- Module Notes -----------------------------------------------------------
# Per-request correlation comes from the ambient request span opened by the
# middleware, so handlers never need to thread ids through dependencies.
