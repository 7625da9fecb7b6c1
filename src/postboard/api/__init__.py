"""
postboard.api

API package for the post board service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: post/auth handlers live elsewhere and only consume
# `Telemetry.logger` / `Telemetry.with_span` from the observability package.
