"""
tests.test_trace_context

Trace id resolution order, header formats and correlation context behavior.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace

import pytest

from postboard.observability.trace_context import (
    CorrelationContext,
    resolve_correlation,
    resolve_trace_id,
)

W3C_TRACE = "1234567890abcdef1234567890abcdef"


@dataclass
class FakeSpan:
    trace_id: str
    span_id: str = "bbbbbbbbbbbbbbbb"


def test_ambient_span_wins_over_fields_and_headers() -> None:
    span = FakeSpan(trace_id="a" * 32)
    carrier = {
        "trace_id": "deadbeef",
        "headers": {"x-trace-id": "c" * 32, "traceparent": f"00-{W3C_TRACE}-bbbbbbbbbbbbbbbb-01"},
    }
    assert resolve_trace_id(span, carrier) == "a" * 32


def test_traceparent_header() -> None:
    carrier = {"headers": {"traceparent": f"00-{W3C_TRACE}-bbbbbbbbbbbbbbbb-01"}}
    assert resolve_trace_id(None, carrier) == W3C_TRACE


def test_field_fallback() -> None:
    assert resolve_trace_id(None, {"trace_id": "deadbeef"}) == "deadbeef"


def test_no_match_is_none() -> None:
    assert resolve_trace_id(None, {}) is None
    assert resolve_trace_id() is None


def test_field_acceptance_order() -> None:
    carrier = {"trace_id": "third", "traceID": "second", "traceId": "first"}
    assert resolve_trace_id(None, carrier) == "first"
    del carrier["traceId"]
    assert resolve_trace_id(None, carrier) == "second"


def test_fields_beat_headers() -> None:
    carrier = {"traceId": "from-field", "headers": {"x-trace-id": "from-header"}}
    assert resolve_trace_id(None, carrier) == "from-field"


@pytest.mark.parametrize("name", ["traceid", "X-Trace-Id", "X-B3-TraceId"])
def test_id_headers_case_insensitive(name: str) -> None:
    assert resolve_trace_id(None, {"headers": {name: "abc123"}}) == "abc123"


def test_id_headers_beat_traceparent() -> None:
    carrier = {
        "headers": {
            "traceparent": f"00-{W3C_TRACE}-bbbbbbbbbbbbbbbb-01",
            "x-b3-traceid": "ffffffffffffffff",
        }
    }
    assert resolve_trace_id(None, carrier) == "ffffffffffffffff"


def test_malformed_traceparent_falls_through_to_b3() -> None:
    carrier = {
        "headers": {
            "traceparent": "00-not-hex-at-all-01",
            "b3": "abcdefabcdefabcd-1111111111111111-1",
        }
    }
    assert resolve_trace_id(None, carrier) == "abcdefabcdefabcd"


def test_traceparent_hex_length_bounds() -> None:
    too_short = {"headers": {"traceparent": "00-abcdef-bbbbbbbbbbbbbbbb-01"}}
    too_long = {"headers": {"traceparent": f"00-{'a' * 33}-bbbbbbbbbbbbbbbb-01"}}
    upper = {"headers": {"traceparent": f"00-{W3C_TRACE.upper()}-bbbbbbbbbbbbbbbb-01"}}
    assert resolve_trace_id(None, too_short) is None
    assert resolve_trace_id(None, too_long) is None
    assert resolve_trace_id(None, upper) == W3C_TRACE.upper()


def test_b3_rejects_malformed_segment() -> None:
    assert resolve_trace_id(None, {"b3": "xyz-123-1"}) is None


def test_traceparent_and_b3_as_carrier_fields() -> None:
    assert resolve_trace_id(None, {"traceparent": f"00-{W3C_TRACE}-bb-01"}) == W3C_TRACE
    assert resolve_trace_id(None, {"b3": "0123456789abcdef-bb-1"}) == "0123456789abcdef"


def test_blank_values_are_absent() -> None:
    carrier = {"traceId": "   ", "headers": {"x-trace-id": "", "traceid": "\t"}}
    assert resolve_trace_id(None, carrier) is None


def test_request_wrapped_headers() -> None:
    as_mapping = {"req": {"headers": {"x-trace-id": "from-req"}}}
    as_object = {"req": SimpleNamespace(headers={"traceid": "from-obj"})}
    assert resolve_trace_id(None, as_mapping) == "from-req"
    assert resolve_trace_id(None, as_object) == "from-obj"


def test_lookup_failure_is_absent() -> None:
    class ExplodingCarrier(dict):
        def get(self, key, default=None):
            raise RuntimeError("broken carrier")

    assert resolve_trace_id(None, ExplodingCarrier(x=1)) is None


def test_ambient_span_without_trace_id_falls_back() -> None:
    span = FakeSpan(trace_id="")
    assert resolve_trace_id(span, {"trace_id": "deadbeef"}) == "deadbeef"


def test_correlation_from_span_ignores_carrier_ids() -> None:
    span = FakeSpan(trace_id="a" * 32, span_id="1" * 16)
    ctx = resolve_correlation(span, {"trace_id": "deadbeef"}, request_id="req-1")
    assert ctx == CorrelationContext(trace_id="a" * 32, span_id="1" * 16, request_id="req-1")


def test_correlation_without_span_has_no_span_id() -> None:
    ctx = resolve_correlation(None, {"headers": {"x-trace-id": "t-1"}}, user_id="u-9")
    assert ctx.trace_id == "t-1"
    assert ctx.span_id is None
    assert ctx.user_id == "u-9"


def test_context_extends_by_copy() -> None:
    base = CorrelationContext(trace_id="t")
    extended = base.with_updates(request_id="r", user_id=None)
    assert base.request_id is None
    assert extended == CorrelationContext(trace_id="t", request_id="r")
    assert extended.as_fields() == {"trace_id": "t", "request_id": "r"}
    assert CorrelationContext().as_fields() == {}
