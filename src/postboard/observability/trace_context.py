"""
postboard.observability.trace_context

Trace identifier resolution and correlation context.

Responsibilities:
- Resolve a trace id from an ambient span or a context carrier (fields/headers).
- Understand direct header ids, W3C `traceparent` and B3 single-header formats.
- Define the immutable `CorrelationContext` attached to every telemetry record.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Protocol

_HEX_TRACE_ID = re.compile(r"[0-9a-f]{16,32}", re.IGNORECASE)

# Acceptance order matters: the first non-blank value wins.
TRACE_ID_FIELDS: tuple[str, ...] = ("traceId", "traceID", "trace_id")
TRACE_ID_HEADERS: tuple[str, ...] = ("traceid", "x-trace-id", "x-b3-traceid")
TRACEPARENT = "traceparent"
B3 = "b3"


class SpanLike(Protocol):
    @property
    def trace_id(self) -> str: ...

    @property
    def span_id(self) -> str: ...


@dataclass(frozen=True, slots=True)
class CorrelationContext:
    """
    Identifiers relating a record to a trace. Extend with `with_updates`, never mutate.
    """

    trace_id: str | None = None
    span_id: str | None = None
    request_id: str | None = None
    user_id: str | None = None

    def with_updates(self, **changes: str | None) -> CorrelationContext:
        # Only fill in provided values; None means "keep what we have".
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def as_fields(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for key in ("trace_id", "span_id", "request_id", "user_id"):
            value = getattr(self, key)
            if value:
                out[key] = value
        return out


def resolve_trace_id(
    ambient_span: SpanLike | None = None,
    carrier: Mapping[str, Any] | None = None,
) -> str | None:
    """
    Return the trace id for the current unit of work, or None.

    Sources, first match wins: ambient span, carrier fields, id headers,
    W3C traceparent, B3 single header. Never raises.
    """
    try:
        return _resolve(ambient_span, carrier)
    except Exception:
        return None


def resolve_correlation(
    ambient_span: SpanLike | None = None,
    carrier: Mapping[str, Any] | None = None,
    *,
    request_id: str | None = None,
    user_id: str | None = None,
) -> CorrelationContext:
    span_id = None
    if ambient_span is not None:
        span_id = _text(getattr(ambient_span, "span_id", None))
    return CorrelationContext(
        trace_id=resolve_trace_id(ambient_span, carrier),
        # A span id from anywhere but the span would contradict the span's trace.
        span_id=span_id,
        request_id=request_id,
        user_id=user_id,
    )


def _resolve(ambient_span: SpanLike | None, carrier: Mapping[str, Any] | None) -> str | None:
    if ambient_span is not None:
        trace_id = _text(getattr(ambient_span, "trace_id", None))
        if trace_id:
            return trace_id

    if not carrier:
        return None

    for name in TRACE_ID_FIELDS:
        trace_id = _text(carrier.get(name))
        if trace_id:
            return trace_id

    headers = _headers_of(carrier)
    for name in TRACE_ID_HEADERS:
        trace_id = _header(headers, name)
        if trace_id:
            return trace_id

    traceparent = _text(carrier.get(TRACEPARENT)) or _header(headers, TRACEPARENT)
    if traceparent:
        parts = traceparent.split("-")
        if len(parts) >= 2 and _HEX_TRACE_ID.fullmatch(parts[1]):
            return parts[1]

    b3 = _text(carrier.get(B3)) or _header(headers, B3)
    if b3:
        candidate = b3.split("-")[0]
        if _HEX_TRACE_ID.fullmatch(candidate):
            return candidate

    return None


def _headers_of(carrier: Mapping[str, Any]) -> Mapping[str, Any] | None:
    headers = carrier.get("headers")
    if headers is None:
        req = carrier.get("req")
        if isinstance(req, Mapping):
            headers = req.get("headers")
        elif req is not None:
            headers = getattr(req, "headers", None)
    return headers if isinstance(headers, Mapping) else None


def _header(headers: Mapping[str, Any] | None, name: str) -> str | None:
    if not headers:
        return None
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == name:
            text = _text(value)
            if text:
                return text
    return None


def _text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


# --- Module Notes -----------------------------------------------------------
# Callers treat a None trace id as "no correlation", never as an error: records
# then omit the trace_id key entirely rather than carrying an empty string.
