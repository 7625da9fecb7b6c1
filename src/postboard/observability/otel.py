"""
postboard.observability.otel

OpenTelemetry-backed span runtime.

Responsibilities:
- Expose the ambient OpenTelemetry span through the core's `TracingRuntime` shape.
- Open spans on the globally registered tracer provider.
- Record the sampling decision for traces this process starts.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import NonRecordingSpan, SpanContext, Status, StatusCode, TraceFlags

from postboard.observability.sampling import SamplingDecider
from postboard.observability.tracing import SpanStatus

_STATUS_CODES = {
    SpanStatus.unset: StatusCode.UNSET,
    SpanStatus.ok: StatusCode.OK,
    SpanStatus.error: StatusCode.ERROR,
}


class OtelSpan:
    """
    Adapts an OpenTelemetry span; ids are rendered as lowercase hex.
    """

    __slots__ = ("_span", "_ended")

    def __init__(self, span: trace.Span) -> None:
        self._span = span
        self._ended = False

    @property
    def raw(self) -> trace.Span:
        return self._span

    @property
    def trace_id(self) -> str:
        return format(self._span.get_span_context().trace_id, "032x")

    @property
    def span_id(self) -> str:
        return format(self._span.get_span_context().span_id, "016x")

    def set_status(self, status: SpanStatus, message: str | None = None) -> None:
        code = _STATUS_CODES[status]
        # The OTel API only keeps a description for ERROR statuses.
        description = message if code is StatusCode.ERROR else None
        self._span.set_status(Status(code, description))

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._span.end()


class OtelTracingRuntime:
    def __init__(
        self,
        *,
        sampler: SamplingDecider,
        instrumentation_name: str = "postboard",
        tracer_provider: trace.TracerProvider | None = None,
    ) -> None:
        self._sampler = sampler
        self._tracer = trace.get_tracer(instrumentation_name, tracer_provider=tracer_provider)

    def active_span(self) -> OtelSpan | None:
        span = trace.get_current_span()
        if not span.get_span_context().is_valid:
            return None
        return OtelSpan(span)

    @contextmanager
    def start_span(self, name: str, *, trace_id: str | None = None) -> Iterator[OtelSpan]:
        is_root = not trace.get_current_span().get_span_context().is_valid
        context = None
        if is_root and trace_id:
            context = _remote_parent(trace_id)

        with self._tracer.start_as_current_span(
            name,
            context=context,
            end_on_exit=False,
            record_exception=False,
            set_status_on_exception=False,
        ) as raw:
            span = OtelSpan(raw)
            if is_root:
                self._sampler.decide(span.trace_id)
            try:
                yield span
            finally:
                span.end()


def _remote_parent(trace_id: str):
    # Continue a caller's trace: the parent span id is synthetic, only the trace id matters.
    try:
        trace_int = int(trace_id, 16)
    except ValueError:
        return None
    if trace_int == 0 or trace_int >= 1 << 128:
        return None
    parent = SpanContext(
        trace_id=trace_int,
        span_id=1,
        is_remote=True,
        trace_flags=TraceFlags(TraceFlags.SAMPLED),
    )
    return trace.set_span_in_context(NonRecordingSpan(parent))


# --- Module Notes -----------------------------------------------------------
# Exporter/provider setup belongs to the host process (e.g. an OTLP exporter registered
# at startup); this module only reads and creates spans on whatever provider is active.
