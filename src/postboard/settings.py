"""
postboard.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the service and its telemetry core.
- Hide secrets from repr/logging (e.g., Loki password/token).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LEVELS = ("debug", "info", "warn", "error")


class Settings(BaseSettings):
    """
    Env names are unprefixed so existing deployments (LOG_DIR, LOKI_URL, ...)
    keep working unchanged.
    """

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, extra="ignore")

    env: Literal["dev", "test", "prod"] = "dev"
    project_name: str = "postboard"
    log_level: str = "info"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Local durable sink
    log_dir: Path = Path("logs")
    log_file: str = "app.log"

    # Remote aggregation (Loki push API)
    loki_enabled: bool = True
    loki_url: str = "http://localhost:3100/loki/api/v1/push"
    loki_app: str | None = None
    loki_job: str | None = None
    loki_env: str = "development"
    loki_username: str | None = None
    loki_password: str | None = Field(default=None, repr=False)
    loki_token: str | None = Field(default=None, repr=False)
    loki_timeout_seconds: float = Field(default=5.0, gt=0)
    loki_queue_size: int = Field(default=1000, ge=1)
    loki_batch_size: int = Field(default=100, ge=1)
    loki_flush_interval_seconds: float = Field(default=1.0, gt=0)

    # Tracing
    sampling_ratio: float = Field(default=0.1, ge=0.0, le=1.0)
    tracing_backend: Literal["native", "otel"] = "native"

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level == "warning":
            level = "warn"
        if level not in _LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LEVELS)}")
        return level

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.log_file

    @property
    def app_label(self) -> str:
        return self.loki_app or self.project_name

    @property
    def job_label(self) -> str:
        return self.loki_job or self.app_label


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Telemetry wiring reads these values once in `observability.telemetry.Telemetry.from_settings`;
# changing them at runtime has no effect on an already-built pipeline.
