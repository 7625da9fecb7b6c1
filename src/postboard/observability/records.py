"""
postboard.observability.records

Telemetry record model.

Responsibilities:
- Define log levels, error detail and the immutable `TelemetryRecord`.
- Produce a deterministic JSON serialization for the local sink.
- Expose the merged structured fields the remote sink puts next to the message.
"""

from __future__ import annotations

import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

import structlog

from postboard.observability.trace_context import CorrelationContext

# sort_keys keeps serialization independent of the order fields were supplied in.
_render = structlog.processors.JSONRenderer(sort_keys=True, default=str)

# Keys the record itself writes. Caller fields with these names are kept under
# a `fields.` prefix so neither sink overwrites them.
RESERVED_KEYS = frozenset({"time_ns", "level", "msg", "error"})
RESERVED_PREFIX = "fields."


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warn = "warn"
    error = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: str | LogLevel) -> LogLevel:
        if isinstance(value, LogLevel):
            return value
        normalized = value.strip().lower()
        if normalized == "warning":
            normalized = "warn"
        return cls(normalized)


_SEVERITY = {
    LogLevel.debug: 10,
    LogLevel.info: 20,
    LogLevel.warn: 30,
    LogLevel.error: 40,
}


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    name: str
    message: str
    stack: str | None = None

    @classmethod
    def from_exception(cls, err: BaseException) -> ErrorDetail:
        stack = None
        if err.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(err), err, err.__traceback__))
        return cls(name=type(err).__name__, message=str(err), stack=stack)

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "message": self.message, "stack": self.stack}


def now_ns() -> int:
    # Millisecond wall clock scaled to nanoseconds; sub-ms ordering is not preserved.
    return (time.time_ns() // 1_000_000) * 1_000_000


@dataclass(frozen=True, slots=True)
class TelemetryRecord:
    """
    One structured, correlation-tagged log event. Built once, never mutated.
    """

    level: LogLevel
    message: str
    context: CorrelationContext = field(default_factory=CorrelationContext)
    fields: Mapping[str, Any] = field(default_factory=dict)
    error: ErrorDetail | None = None
    timestamp_ns: int = field(default_factory=now_ns)

    def __post_init__(self) -> None:
        # Freeze the caller's mapping so later mutation on their side can't leak in.
        fields = {
            (RESERVED_PREFIX + k if k in RESERVED_KEYS else k): v for k, v in self.fields.items()
        }
        object.__setattr__(self, "fields", MappingProxyType(fields))

    @property
    def trace_id(self) -> str | None:
        return self.context.trace_id

    def structured_fields(self) -> dict[str, Any]:
        """
        Correlation ids, caller fields and error detail merged into one mapping.
        Correlation keys are only present when set.
        """
        data: dict[str, Any] = dict(self.fields)
        data.update(self.context.as_fields())
        if self.error is not None:
            data["error"] = self.error.as_dict()
        return data

    def to_dict(self) -> dict[str, Any]:
        data = self.structured_fields()
        data["time_ns"] = self.timestamp_ns
        data["level"] = self.level.value
        data["msg"] = self.message
        return data

    def to_json(self) -> str:
        return _render(None, self.level.value, self.to_dict())


# --- Module Notes -----------------------------------------------------------
# `to_json` is the local file format (one object per line). The Loki line is built by
# `remote.format_line` from `structured_fields()`; labels carry job/app/env/level.
