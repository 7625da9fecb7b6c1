"""
postboard.observability.tracing

Native span runtime backed by contextvars.

Responsibilities:
- Track the ambient (task-local) active span without a process-wide global.
- Open root or child spans, continuing a caller-provided trace id when given.
- Draw the sampling decision once when a new trace is created.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from postboard.observability.sampling import SamplingDecider


class SpanStatus(str, Enum):
    unset = "unset"
    ok = "ok"
    error = "error"


class TelemetrySpan(Protocol):
    """
    Minimal span capability the core depends on.
    """

    @property
    def trace_id(self) -> str: ...

    @property
    def span_id(self) -> str: ...

    def set_status(self, status: SpanStatus, message: str | None = None) -> None: ...

    def end(self) -> None: ...


class TracingRuntime(Protocol):
    def active_span(self) -> TelemetrySpan | None: ...

    def start_span(
        self, name: str, *, trace_id: str | None = None
    ) -> AbstractContextManager[TelemetrySpan]: ...


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_span_id() -> str:
    return secrets.token_hex(8)


@dataclass(slots=True, eq=False)
class Span:
    name: str
    trace_id: str
    span_id: str
    parent_span_id: str | None = None
    sampled: bool = True
    start_ns: int = field(default_factory=time.time_ns)
    end_ns: int | None = None
    status: SpanStatus = SpanStatus.unset
    status_message: str | None = None
    _on_end: Callable[[Span], None] | None = field(default=None, repr=False)

    @property
    def ended(self) -> bool:
        return self.end_ns is not None

    def set_status(self, status: SpanStatus, message: str | None = None) -> None:
        if self.ended:
            return
        self.status = status
        self.status_message = message

    def end(self) -> None:
        # Closing twice is a no-op; only the first close is reported.
        if self.ended:
            return
        self.end_ns = time.time_ns()
        if self._on_end is not None:
            self._on_end(self)


_active_span: ContextVar[Span | None] = ContextVar("postboard_active_span", default=None)


class Tracer:
    """
    `start_span` makes the span ambient for the enclosed block and ends it on exit.
    """

    def __init__(
        self,
        *,
        sampler: SamplingDecider,
        on_end: Callable[[Span], None] | None = None,
    ) -> None:
        self._sampler = sampler
        self._on_end = on_end

    @property
    def sampler(self) -> SamplingDecider:
        return self._sampler

    def active_span(self) -> Span | None:
        return _active_span.get()

    @contextmanager
    def start_span(self, name: str, *, trace_id: str | None = None) -> Iterator[Span]:
        parent = _active_span.get()
        if parent is not None and trace_id in (None, parent.trace_id):
            span = Span(
                name=name,
                trace_id=parent.trace_id,
                span_id=new_span_id(),
                parent_span_id=parent.span_id,
                sampled=parent.sampled,
                _on_end=self._on_end,
            )
        else:
            root_trace_id = trace_id or new_trace_id()
            span = Span(
                name=name,
                trace_id=root_trace_id,
                span_id=new_span_id(),
                sampled=self._sampler.decide(root_trace_id),
                _on_end=self._on_end,
            )

        token = _active_span.set(span)
        try:
            yield span
        finally:
            _active_span.reset(token)
            span.end()


# --- Module Notes -----------------------------------------------------------
# Spans are not exported anywhere by this runtime; it exists to give logs a trace/span
# identity. Hosts that already run OpenTelemetry use `observability.otel` instead.
