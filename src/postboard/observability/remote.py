"""
postboard.observability.remote

Best-effort export channel to a Loki push endpoint.

Responsibilities:
- Accept entries fire-and-forget into a bounded queue (drop-oldest on overflow).
- Batch entries on a background worker and push them grouped into label streams.
- Absorb every delivery failure: no raise, no retry, no recursive logging.
"""

from __future__ import annotations

import base64
import queue
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from postboard.observability.logging import get_logger
from postboard.observability.records import now_ns

log = get_logger(__name__)

_render = structlog.processors.JSONRenderer(sort_keys=True, default=str)


@dataclass(frozen=True, slots=True)
class LokiAuth:
    username: str | None = None
    password: str | None = None
    token: str | None = None

    def headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        if self.username and self.password:
            raw = f"{self.username}:{self.password}".encode()
            return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}
        return {}


@dataclass(frozen=True, slots=True)
class ExportEntry:
    labels: tuple[tuple[str, str], ...]
    timestamp_ns: int
    line: str


class ExportStats:
    """
    Thread-safe delivery counters; the only visible trace of remote failures.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    def incr(self, name: str, n: int = 1) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + n)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {"sent": self.sent, "failed": self.failed, "dropped": self.dropped}


def build_push_payload(entries: list[ExportEntry]) -> dict[str, Any]:
    streams: dict[tuple[tuple[str, str], ...], list[list[str]]] = {}
    for entry in entries:
        streams.setdefault(entry.labels, []).append([str(entry.timestamp_ns), entry.line])
    return {
        "streams": [{"stream": dict(labels), "values": values} for labels, values in streams.items()]
    }


def format_line(message: str, fields: Mapping[str, Any] | None) -> str:
    if not fields:
        return message
    return f"{message} | {_render(None, '', dict(fields))}"


_STOP = object()


class RemoteExportChannel:
    """
    `send` never blocks on the network: the worker thread owns the HTTP client.

    Args:
        url: Loki push endpoint.
        timeout: per-push timeout in seconds.
        queue_size: bound on pending entries; the oldest entry is dropped when full.
        batch_size: max entries per push.
        flush_interval: how long the worker waits to fill a batch before pushing.
        transport: optional httpx transport (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        *,
        url: str,
        auth: LokiAuth | None = None,
        timeout: float = 5.0,
        queue_size: int = 1000,
        batch_size: int = 100,
        flush_interval: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if queue_size < 1 or batch_size < 1:
            raise ValueError("queue_size and batch_size must be positive")
        self._url = url
        self._auth = auth or LokiAuth()
        self._timeout = timeout
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._transport = transport
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=queue_size)
        self._put_lock = threading.Lock()
        self._state_lock = threading.Lock()
        # Entries accepted but not yet pushed, failed or dropped.
        self._pending = 0
        self._idle = threading.Condition()
        self._thread: threading.Thread | None = None
        self._closed = False
        self.stats = ExportStats()

    def start(self) -> None:
        with self._state_lock:
            if self._thread is not None or self._closed:
                return
            self._thread = threading.Thread(
                target=self._run, name="postboard-loki-export", daemon=True
            )
            self._thread.start()

    def send(
        self,
        level: str,
        message: str,
        labels: Mapping[str, str],
        fields: Mapping[str, Any] | None = None,
        *,
        timestamp_ns: int | None = None,
    ) -> None:
        try:
            stream = dict(labels)
            stream["level"] = level
            entry = ExportEntry(
                labels=tuple(sorted(stream.items())),
                timestamp_ns=timestamp_ns if timestamp_ns is not None else now_ns(),
                line=format_line(message, fields),
            )
        except Exception:
            self.stats.incr("dropped")
            return
        self.submit(entry)

    def submit(self, entry: ExportEntry) -> None:
        if self._closed:
            return
        if self._thread is None:
            self.start()
        with self._put_lock:
            # `close` flips `_closed` under this lock; nothing is queued behind `_STOP`.
            if self._closed:
                return
            with self._idle:
                self._pending += 1
            while True:
                try:
                    self._queue.put_nowait(entry)
                    break
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        continue
                    self.stats.incr("dropped")
                    self._settle(1)

    def flush(self, timeout: float = 5.0) -> bool:
        """
        Wait until every entry submitted so far has been pushed (or failed).
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def close(self, timeout: float = 5.0) -> None:
        with self._state_lock, self._put_lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
        if thread is None:
            return
        # No sender can enqueue past this point, so the worker drains toward `_STOP`.
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            # Worker is wedged on a push; it is a daemon thread, let it go.
            return
        thread.join(timeout)
        log.info("telemetry_export_stopped", **self.stats.snapshot())

    def _settle(self, n: int) -> None:
        with self._idle:
            self._pending -= n
            if self._pending <= 0:
                self._idle.notify_all()

    def _run(self) -> None:
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            while True:
                first = self._queue.get()
                if first is _STOP:
                    return
                batch = [first]
                stop = self._fill_batch(batch)
                try:
                    self._push(client, batch)
                finally:
                    self._settle(len(batch))
                if stop:
                    return

    def _fill_batch(self, batch: list[ExportEntry]) -> bool:
        deadline = time.monotonic() + self._flush_interval
        while len(batch) < self._batch_size:
            remaining = deadline - time.monotonic()
            try:
                if remaining > 0:
                    item = self._queue.get(timeout=remaining)
                else:
                    item = self._queue.get_nowait()
            except queue.Empty:
                return False
            if item is _STOP:
                return True
            batch.append(item)
        return False

    def _push(self, client: httpx.Client, batch: list[ExportEntry]) -> None:
        headers = {"Content-Type": "application/json", **self._auth.headers()}
        try:
            r = client.post(self._url, json=build_push_payload(batch), headers=headers)
            r.raise_for_status()
        except Exception:
            # Absorbed: counted, never raised or retried.
            self.stats.incr("failed", len(batch))
            return
        self.stats.incr("sent", len(batch))


# --- Module Notes -----------------------------------------------------------
# Nothing on the push path logs through the emitter; `stats` is the only failure signal.
# The single structlog call in `close` goes to stdout, never back into this channel.
