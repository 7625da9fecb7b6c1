"""
tests.support

Test doubles shared across modules.

Responsibilities:
- `RecordingDispatcher`: captures records instead of writing them anywhere.
- `LokiRecorder`: a fake Loki push endpoint on top of `httpx.MockTransport`.
- `read_records`: parse a local sink file back into dicts.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from postboard.observability.records import LogLevel, TelemetryRecord


class RecordingDispatcher:
    def __init__(self, min_level: LogLevel = LogLevel.debug) -> None:
        self.records: list[TelemetryRecord] = []
        self._min_level = min_level

    def enabled_for(self, level: LogLevel) -> bool:
        return level.severity >= self._min_level.severity

    def dispatch(self, record: TelemetryRecord) -> None:
        self.records.append(record)

    def messages(self) -> list[str]:
        return [r.message for r in self.records]


class LokiRecorder:
    """
    Captures pushes; `respond` decides the outcome of each request.
    """

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()
        self._respond = respond or (lambda _req: httpx.Response(204))

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self._respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def lines(self) -> list[str]:
        return [
            value[1]
            for payload in self.payloads()
            for stream in payload["streams"]
            for value in stream["values"]
        ]


def read_records(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
