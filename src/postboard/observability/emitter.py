"""
postboard.observability.emitter

Correlated log emitter.

Responsibilities:
- Build `TelemetryRecord`s tagged with trace/span/request/user ids.
- Write every record to the local sink (queued, non-blocking).
- Forward records to the remote channel according to the sampling policy.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from postboard.observability.local_sink import LocalFileSink
from postboard.observability.records import ErrorDetail, LogLevel, TelemetryRecord
from postboard.observability.remote import RemoteExportChannel
from postboard.observability.sampling import SamplingDecider
from postboard.observability.trace_context import (
    TRACE_ID_FIELDS,
    CorrelationContext,
    resolve_correlation,
)
from postboard.observability.tracing import TracingRuntime

# Keys that describe correlation rather than the event; folded into the context.
CORRELATION_KEYS = frozenset(TRACE_ID_FIELDS) | {"span_id", "request_id", "user_id"}

LogFields = Mapping[str, Any]


class LogDispatcher:
    """
    Routes finished records to the sinks.

    Export policy: a record with a trace id is shipped remotely only when that
    trace is sampled; a record without one is always shipped.
    """

    def __init__(
        self,
        *,
        local: LocalFileSink,
        sampler: SamplingDecider,
        remote: RemoteExportChannel | None = None,
        labels: Mapping[str, str] | None = None,
        min_level: LogLevel | str = LogLevel.info,
    ) -> None:
        self._local = local
        self._remote = remote
        self._sampler = sampler
        self._labels = dict(labels or {})
        self._min_level = LogLevel.parse(min_level)

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    def enabled_for(self, level: LogLevel) -> bool:
        return level.severity >= self._min_level.severity

    def should_export(self, record: TelemetryRecord) -> bool:
        if record.trace_id is None:
            return True
        return self._sampler.lookup(record.trace_id)

    def dispatch(self, record: TelemetryRecord) -> None:
        self._local.write(record)
        if self._remote is not None and self.should_export(record):
            self._remote.send(
                record.level.value,
                record.message,
                self._labels,
                record.structured_fields(),
                timestamp_ns=record.timestamp_ns,
            )


class CorrelatedLogger:
    """
    `debug`/`info`/`warn`/`error` entry points; every call returns immediately.

    Unless the bound context carries a trace id, correlation is resolved per call
    from the ambient span and the call's fields (which may carry `trace_id`,
    `headers`, ...); bound request/user ids are layered on top.
    `bind` and `with_context` return new loggers; the original is unchanged.
    """

    __slots__ = ("_dispatcher", "_runtime", "_context", "_bound")

    def __init__(
        self,
        dispatcher: LogDispatcher,
        runtime: TracingRuntime | None = None,
        *,
        context: CorrelationContext | None = None,
        bound: LogFields | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._runtime = runtime
        self._context = context
        self._bound: dict[str, Any] = dict(bound or {})

    @property
    def context(self) -> CorrelationContext | None:
        return self._context

    def bind(self, **fields: Any) -> CorrelatedLogger:
        return CorrelatedLogger(
            self._dispatcher,
            self._runtime,
            context=self._context,
            bound={**self._bound, **fields},
        )

    def with_context(self, context: CorrelationContext) -> CorrelatedLogger:
        return CorrelatedLogger(self._dispatcher, self._runtime, context=context, bound=self._bound)

    def for_request(
        self,
        request_id: str,
        user_id: str | None = None,
        trace_id: str | None = None,
    ) -> CorrelatedLogger:
        """
        Logger pinned to one request. Without an explicit trace id the ambient
        span's ids are used (if any).
        """
        span = self._active_span()
        if trace_id is None and span is not None:
            context = CorrelationContext(trace_id=span.trace_id, span_id=span.span_id)
        else:
            context = CorrelationContext(trace_id=trace_id)
        return self.with_context(context.with_updates(request_id=request_id, user_id=user_id))

    def debug(self, message: str, fields: LogFields | None = None) -> None:
        self._log(LogLevel.debug, message, None, fields)

    def info(self, message: str, fields: LogFields | None = None) -> None:
        self._log(LogLevel.info, message, None, fields)

    def warn(self, message: str, fields: LogFields | None = None) -> None:
        self._log(LogLevel.warn, message, None, fields)

    warning = warn

    def error(
        self,
        message: str,
        err: BaseException | None = None,
        fields: LogFields | None = None,
    ) -> None:
        self._log(LogLevel.error, message, err, fields)

    def _log(
        self,
        level: LogLevel,
        message: str,
        err: BaseException | None,
        fields: LogFields | None,
    ) -> None:
        if not self._dispatcher.enabled_for(level):
            return
        carrier = {**self._bound, **(fields or {})}
        record = TelemetryRecord(
            level=level,
            message=str(message),
            context=self._correlate(carrier),
            fields={k: v for k, v in carrier.items() if k not in CORRELATION_KEYS},
            error=ErrorDetail.from_exception(err) if err is not None else None,
        )
        self._dispatcher.dispatch(record)

    def _correlate(self, carrier: dict[str, Any]) -> CorrelationContext:
        request_id = _str_or_none(carrier.get("request_id"))
        user_id = _str_or_none(carrier.get("user_id"))
        bound = self._context
        if bound is not None and bound.trace_id is not None:
            # Bound ids win; the call may only fill the gaps.
            return CorrelationContext(
                trace_id=bound.trace_id,
                span_id=bound.span_id,
                request_id=bound.request_id or request_id,
                user_id=bound.user_id or user_id,
            )
        resolved = resolve_correlation(
            self._active_span(),
            carrier,
            request_id=request_id,
            user_id=user_id,
        )
        if bound is None:
            return resolved
        return resolved.with_updates(request_id=bound.request_id, user_id=bound.user_id)

    def _active_span(self):
        if self._runtime is None:
            return None
        try:
            return self._runtime.active_span()
        except Exception:
            return None


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# --- Module Notes -----------------------------------------------------------
# Remote failures never reach this module (the channel absorbs them). The local sink
# only raises at construction time, which happens in `Telemetry.from_settings`.
