"""
postboard.api.__main__

Entrypoint for running the service via `python -m postboard.api` (or `postboard-api`).

Responsibilities:
- Load settings and build the app (telemetry sinks included).
- Turn telemetry configuration errors into a clean startup failure.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from postboard.api.app import create_app
from postboard.observability.local_sink import TelemetryConfigError
from postboard.settings import get_settings


def main() -> None:
    settings = get_settings()
    try:
        app = create_app(settings=settings)
    except TelemetryConfigError as e:
        # Logging isn't configured yet; SystemExit prints to stderr and exits non-zero.
        raise SystemExit(f"postboard: telemetry misconfigured: {e}") from e

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()


# --- Module Notes -----------------------------------------------------------
# LOG_DIR must be creatable and writable before the process serves traffic; every
# other telemetry failure after startup is absorbed.
