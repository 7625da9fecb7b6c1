"""
postboard.observability.local_sink

Local durable sink for telemetry records.

Responsibilities:
- Ensure the log directory exists and the file is writable at startup (fail loudly).
- Append one JSON object per record without blocking the caller.
- Keep writes in strict FIFO order via a single writer thread.
"""

from __future__ import annotations

import logging
import queue
import threading
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path

from postboard.observability.records import TelemetryRecord


class TelemetryConfigError(RuntimeError):
    pass


class LocalSinkUnavailableError(TelemetryConfigError):
    pass


class LocalFileSink:
    """
    Callers enqueue; a `QueueListener` thread drains the queue into a `FileHandler`.
    """

    def __init__(self, path: Path | str, *, encoding: str = "utf-8") -> None:
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Opening eagerly (delay=False) surfaces permission problems at startup.
            self._file_handler = logging.FileHandler(self._path, mode="a", encoding=encoding)
        except OSError as e:
            raise LocalSinkUnavailableError(
                f"cannot open local telemetry sink at {self._path}: {e}"
            ) from e
        self._file_handler.setFormatter(logging.Formatter("%(message)s"))

        self._queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
        self._enqueue = QueueHandler(self._queue)
        self._listener = QueueListener(self._queue, self._file_handler)
        self._lock = threading.Lock()
        self._running = False
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    def start(self) -> None:
        with self._lock:
            if self._running or self._closed:
                return
            self._listener.start()
            self._running = True

    def write(self, record: TelemetryRecord) -> None:
        if self._closed:
            return
        if not self._running:
            self.start()
        line = logging.makeLogRecord(
            {
                "name": "postboard.telemetry",
                "levelno": logging.INFO,
                "levelname": record.level.value.upper(),
                "msg": record.to_json(),
            }
        )
        self._enqueue.handle(line)

    def flush(self) -> None:
        """
        Wait until everything enqueued so far is on disk.
        """
        with self._lock:
            if not self._running:
                return
            # Restarting the listener drains the queue (stop() joins after the sentinel).
            self._listener.stop()
            self._file_handler.flush()
            self._listener.start()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._running:
                self._listener.stop()
                self._running = False
            self._file_handler.close()


# --- Module Notes -----------------------------------------------------------
# Records are rendered to text on the caller's thread (cheap, and it freezes the
# content); only the file I/O happens on the listener thread.
