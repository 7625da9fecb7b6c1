"""
tests.conftest

Shared fixtures and fakes for telemetry tests.

Responsibilities:
- Provide a recording dispatcher and a recording Loki endpoint.
- Provide test settings rooted in a temporary log directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from postboard.settings import Settings
from tests.support import LokiRecorder, RecordingDispatcher


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def loki() -> LokiRecorder:
    return LokiRecorder()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        log_dir=tmp_path / "logs",
        log_level="info",
        sampling_ratio=1.0,
        loki_url="http://loki.test/loki/api/v1/push",
        loki_flush_interval_seconds=0.01,
    )


# --- Module Notes -----------------------------------------------------------
# Tests never talk to a real Loki; every channel gets a MockTransport.
