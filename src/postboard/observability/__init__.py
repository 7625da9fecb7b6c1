"""
postboard.observability

Observability package.

Responsibilities:
- Trace id resolution, sampling and correlated telemetry records.
- Local (file) and remote (Loki) sinks for those records.
- Span-scoped lifecycle logging for arbitrary operations.
- Structured process logging and request context propagation.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Application code should only need `Telemetry.logger` and `Telemetry.with_span`.
