from opentelemetry.distro import OpenTelemetryDistro
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from .core.logging import get_logger

logger = get_logger(__name__)


def setup_telemetry(app):
    """Configures OpenTelemetry for the application."""
    # Exporter settings come from the standard OTEL_* environment variables,
    # e.g. OTEL_EXPORTER_OTLP_ENDPOINT.
    OpenTelemetryDistro().configure()

    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    logger.info("OpenTelemetry instrumentation complete.")
