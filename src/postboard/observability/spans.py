"""
postboard.observability.spans

Span-scoped execution wrapper.

Responsibilities:
- Run an operation inside a span (reusing the ambient one when present).
- Log Starting/Completed/Failed lifecycle events with a request-bound logger.
- Close owned spans exactly once and re-raise failures unchanged.
"""

from __future__ import annotations

import functools
import secrets
import string
import time
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from typing import ParamSpec, TypeVar

from postboard.observability.emitter import CorrelatedLogger
from postboard.observability.trace_context import CorrelationContext
from postboard.observability.tracing import SpanStatus, TelemetrySpan, TracingRuntime

T = TypeVar("T")
P = ParamSpec("P")

_BASE36 = string.digits + string.ascii_lowercase


def new_request_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


async def with_span(
    operation_name: str,
    body: Callable[[CorrelatedLogger], Awaitable[T]],
    *,
    runtime: TracingRuntime,
    logger: CorrelatedLogger,
    user_id: str | None = None,
) -> T:
    """
    Execute `body(logger)` as a traced, logged operation.

    The body receives a logger bound to the span's trace/span ids and a fresh
    request id. Exceptions propagate as-is after one "Failed ..." error event.
    """
    async with AsyncExitStack() as stack:
        span: TelemetrySpan | None = runtime.active_span()
        if span is None:
            # Owned span: the context manager ends it on every exit path.
            span = stack.enter_context(runtime.start_span(operation_name))

        context = CorrelationContext(
            trace_id=span.trace_id,
            span_id=span.span_id,
            request_id=new_request_id(),
            user_id=user_id,
        )
        bound = logger.with_context(context)

        bound.info(f"Starting {operation_name}")
        try:
            result = await body(bound)
        except Exception as e:
            bound.error(f"Failed {operation_name}", e)
            span.set_status(SpanStatus.error, str(e))
            raise
        bound.info(f"Completed {operation_name}")
        span.set_status(SpanStatus.ok)
        return result


async def create_span(
    name: str,
    fn: Callable[[TelemetrySpan], Awaitable[T]],
    *,
    runtime: TracingRuntime,
) -> T:
    """
    Span lifecycle only (no logging). Reuses the ambient span if there is one.
    """
    ambient = runtime.active_span()
    if ambient is not None:
        return await fn(ambient)
    with runtime.start_span(name) as span:
        try:
            result = await fn(span)
        except Exception as e:
            span.set_status(SpanStatus.error, str(e))
            raise
        span.set_status(SpanStatus.ok)
        return result


def traced(
    operation_name: str,
    *,
    runtime: TracingRuntime,
    logger: CorrelatedLogger,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator form of `with_span` for coroutine functions that don't need the logger.
    """

    def decorator(fn: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await with_span(
                operation_name,
                lambda _log: fn(*args, **kwargs),
                runtime=runtime,
                logger=logger,
            )

        return wrapper

    return decorator


# --- Module Notes -----------------------------------------------------------
# A reused ambient span belongs to whoever opened it (usually the HTTP middleware), so
# only its status is touched here; ending it is the owner's job.
