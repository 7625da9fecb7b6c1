"""
tests.test_records

Telemetry record construction and serialization.
"""

from __future__ import annotations

import json

import pytest

from postboard.observability.records import ErrorDetail, LogLevel, TelemetryRecord, now_ns
from postboard.observability.trace_context import CorrelationContext


def test_serialization_independent_of_field_order() -> None:
    ctx = CorrelationContext(trace_id="t" * 16, request_id="req-1")
    a = TelemetryRecord(LogLevel.info, "hi", ctx, {"a": 1, "b": 2}, timestamp_ns=1_000_000)
    b = TelemetryRecord(LogLevel.info, "hi", ctx, {"b": 2, "a": 1}, timestamp_ns=1_000_000)
    assert a.to_json() == b.to_json()


def test_untraced_record_has_no_trace_key() -> None:
    data = json.loads(TelemetryRecord(LogLevel.warn, "plain").to_json())
    assert "trace_id" not in data
    assert "span_id" not in data
    assert data["level"] == "warn"
    assert data["msg"] == "plain"


def test_record_fields_are_frozen_copy() -> None:
    fields = {"post_id": "p1"}
    record = TelemetryRecord(LogLevel.info, "created", fields=fields)
    fields["post_id"] = "changed"
    assert record.fields["post_id"] == "p1"
    with pytest.raises(TypeError):
        record.fields["x"] = 1  # type: ignore[index]


def test_structured_fields_merge_context_and_error() -> None:
    record = TelemetryRecord(
        LogLevel.error,
        "failed",
        CorrelationContext(trace_id="abc", user_id="u1"),
        {"route": "/posts"},
        ErrorDetail(name="ValueError", message="boom"),
    )
    assert record.structured_fields() == {
        "route": "/posts",
        "trace_id": "abc",
        "user_id": "u1",
        "error": {"name": "ValueError", "message": "boom", "stack": None},
    }


def test_error_detail_from_raised_exception() -> None:
    try:
        raise KeyError("missing")
    except KeyError as e:
        detail = ErrorDetail.from_exception(e)
    assert detail.name == "KeyError"
    assert detail.message == "'missing'"
    assert detail.stack is not None and "KeyError" in detail.stack


def test_error_detail_without_traceback() -> None:
    detail = ErrorDetail.from_exception(RuntimeError("never raised"))
    assert detail.stack is None


def test_timestamp_has_millisecond_resolution() -> None:
    assert now_ns() % 1_000_000 == 0
    assert TelemetryRecord(LogLevel.debug, "x").timestamp_ns % 1_000_000 == 0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("INFO", LogLevel.info), ("warning", LogLevel.warn), (" Error ", LogLevel.error)],
)
def test_level_parse(raw: str, expected: LogLevel) -> None:
    assert LogLevel.parse(raw) is expected


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError):
        LogLevel.parse("fatal")


def test_reserved_caller_keys_are_prefixed_not_overwritten() -> None:
    record = TelemetryRecord(
        LogLevel.error,
        "failed",
        fields={"level": "db", "msg": "m", "time_ns": 1, "error": "caller", "ok": True},
        error=ErrorDetail("ValueError", "boom"),
        timestamp_ns=2_000_000,
    )
    data = record.to_dict()
    assert (data["level"], data["msg"], data["time_ns"]) == ("error", "failed", 2_000_000)
    assert data["error"] == {"name": "ValueError", "message": "boom", "stack": None}
    assert {k: data[k] for k in data if k.startswith("fields.")} == {
        "fields.level": "db",
        "fields.msg": "m",
        "fields.time_ns": 1,
        "fields.error": "caller",
    }
    assert record.structured_fields()["fields.error"] == "caller"
    assert data["ok"] is True
