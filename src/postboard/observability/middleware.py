"""
postboard.observability.middleware

HTTP middleware for request-scoped telemetry context.

Responsibilities:
- Generate/propagate request IDs.
- Continue the caller's trace (trace id headers, traceparent, b3) in a request span.
- Bind request metadata into structlog contextvars.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from postboard.observability.trace_context import resolve_trace_id
from postboard.observability.tracing import SpanStatus, TracingRuntime

_IGNORED_PREFIXES = ("/_next/", "/static/")
_IGNORED_SUFFIXES = (".png", ".jpg", ".jpeg", ".ico")


def is_ignored_path(path: str) -> bool:
    return path.startswith(_IGNORED_PREFIXES) or path.endswith(_IGNORED_SUFFIXES)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    - Ensures every request has a request id
    - Runs each (non-static) request inside a span named "METHOD path"
    - Binds request-scoped contextvars for structured logs
    """

    def __init__(self, app: ASGIApp, *, runtime: TracingRuntime) -> None:
        super().__init__(app)
        self._runtime = runtime

    async def dispatch(self, request: Request, call_next) -> Response:
        # Prefer a caller-provided request id for continuity; otherwise generate one.
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        if is_ignored_path(request.url.path):
            response: Response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response

        incoming_trace_id = resolve_trace_id(None, {"headers": request.headers})
        structlog.contextvars.clear_contextvars()
        try:
            with self._runtime.start_span(
                f"{request.method} {request.url.path}", trace_id=incoming_trace_id
            ) as span:
                structlog.contextvars.bind_contextvars(
                    request_id=request_id,
                    path=request.url.path,
                    method=request.method,
                )
                try:
                    response = await call_next(request)
                except Exception as e:
                    span.set_status(SpanStatus.error, str(e))
                    raise
                span.set_status(
                    SpanStatus.error if response.status_code >= 500 else SpanStatus.ok
                )
                trace_id = span.trace_id
        finally:
            # Avoid leaking context across requests under async concurrency.
            structlog.contextvars.clear_contextvars()

        response.headers["x-request-id"] = request_id
        response.headers["x-trace-id"] = trace_id
        return response


# --- Module Notes -----------------------------------------------------------
# Route handlers see the request span as the ambient span, so `with_span` calls made
# inside them reuse it and their logs share the caller's trace id.
