"""
postboard.observability.telemetry

Composition root for the telemetry core.

Responsibilities:
- Build sampler, span runtime, local sink, remote channel and dispatcher from `Settings`.
- Hand out correlated loggers.
- Start and stop the background writers with the host application.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from postboard.observability.emitter import CorrelatedLogger, LogDispatcher
from postboard.observability.local_sink import LocalFileSink
from postboard.observability.logging import get_logger
from postboard.observability.otel import OtelTracingRuntime
from postboard.observability.remote import LokiAuth, RemoteExportChannel
from postboard.observability.sampling import SamplingDecider
from postboard.observability.spans import with_span
from postboard.observability.tracing import Tracer, TracingRuntime
from postboard.settings import Settings

log = get_logger(__name__)

T = TypeVar("T")


class Telemetry:
    def __init__(
        self,
        *,
        sampler: SamplingDecider,
        runtime: TracingRuntime,
        local: LocalFileSink,
        remote: RemoteExportChannel | None,
        dispatcher: LogDispatcher,
    ) -> None:
        self.sampler = sampler
        self.runtime = runtime
        self.local = local
        self.remote = remote
        self.dispatcher = dispatcher
        self._logger = CorrelatedLogger(dispatcher, runtime)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> Telemetry:
        """
        Raises `LocalSinkUnavailableError` if the log directory/file can't be created.
        """
        sampler = SamplingDecider(settings.sampling_ratio)
        runtime: TracingRuntime
        if settings.tracing_backend == "otel":
            runtime = OtelTracingRuntime(sampler=sampler, instrumentation_name=settings.project_name)
        else:
            runtime = Tracer(sampler=sampler)

        local = LocalFileSink(settings.log_path)

        remote = None
        if settings.loki_enabled:
            remote = RemoteExportChannel(
                url=settings.loki_url,
                auth=LokiAuth(
                    username=settings.loki_username,
                    password=settings.loki_password,
                    token=settings.loki_token,
                ),
                timeout=settings.loki_timeout_seconds,
                queue_size=settings.loki_queue_size,
                batch_size=settings.loki_batch_size,
                flush_interval=settings.loki_flush_interval_seconds,
                transport=transport,
            )

        dispatcher = LogDispatcher(
            local=local,
            remote=remote,
            sampler=sampler,
            labels={"job": settings.job_label, "app": settings.app_label, "env": settings.loki_env},
            min_level=settings.log_level,
        )
        return cls(sampler=sampler, runtime=runtime, local=local, remote=remote, dispatcher=dispatcher)

    @property
    def logger(self) -> CorrelatedLogger:
        return self._logger

    async def with_span(
        self,
        operation_name: str,
        body: Callable[[CorrelatedLogger], Awaitable[T]],
        *,
        user_id: str | None = None,
    ) -> T:
        return await with_span(
            operation_name, body, runtime=self.runtime, logger=self._logger, user_id=user_id
        )

    def start(self) -> None:
        self.local.start()
        if self.remote is not None:
            self.remote.start()
        log.info("telemetry_started", sink=str(self.local.path), remote=self.remote is not None)

    def flush(self, timeout: float = 5.0) -> None:
        self.local.flush()
        if self.remote is not None:
            self.remote.flush(timeout)

    def shutdown(self, timeout: float = 5.0) -> None:
        if self.remote is not None:
            self.remote.close(timeout)
        self.local.close()


# --- Module Notes -----------------------------------------------------------
# One Telemetry instance per process, stashed on `app.state.telemetry` by the app factory.
