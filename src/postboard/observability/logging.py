"""
postboard.observability.logging

Structured logging configuration for the service's own process logs.

Responsibilities:
- Configure `structlog` for JSON logs on stdout (startup/shutdown, lifecycle events).
- Stamp process logs with the ambient trace/span ids.
- Provide a small wrapper for obtaining bound loggers.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from postboard.observability.tracing import TracingRuntime

_STDLIB_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(
    *,
    service_name: str,
    level: str,
    runtime: TracingRuntime | None = None,
) -> None:
    """
    Structured JSON logs for stdout collectors. Telemetry records have their own
    sinks; this is only the process log.
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=_STDLIB_LEVELS.get(level.lower(), logging.INFO),
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service_name(service_name),
    ]
    if runtime is not None:
        processors.append(_add_trace_context(runtime))
    processors += [
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def _add_trace_context(runtime: TracingRuntime):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        span = runtime.active_span()
        if span is not None:
            event_dict.setdefault("trace_id", span.trace_id)
            event_dict.setdefault("span_id", span.span_id)
        return event_dict

    return processor


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata is bound via contextvars in `observability.middleware`.
