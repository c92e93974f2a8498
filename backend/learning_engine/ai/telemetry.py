"""
Adaptive Learning Engine - Telemetry Module
OpenTelemetry tracing for AI calls
"""
import logging
from contextlib import contextmanager
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from learning_engine.core.config import settings

logger = logging.getLogger(__name__)

TRACER_NAME = "learning_engine.ai"

_initialized = False


def init_telemetry() -> None:
    """
    Install a tracer provider exporting to the OTLP endpoint.
    Call this once at application startup.
    """
    global _initialized

    if _initialized:
        return

    resource = Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.version": settings.APP_VERSION,
        "deployment.environment": settings.ENVIRONMENT,
    })
    provider = TracerProvider(resource=resource)

    try:
        exporter = OTLPSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    except Exception as e:
        logger.warning("OTLP exporter unavailable (%s); exporting spans to console", e)
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _initialized = True
    logger.info(
        "Telemetry initialized for %s -> %s",
        settings.OTEL_SERVICE_NAME,
        settings.OTEL_EXPORTER_OTLP_ENDPOINT,
    )


def get_tracer() -> trace.Tracer:
    """Tracer from the global provider (a no-op tracer until init_telemetry runs)."""
    return trace.get_tracer(TRACER_NAME, settings.APP_VERSION)


@contextmanager
def ai_span(name: str, component: str, attributes: Optional[dict] = None):
    """
    Context manager for spans around AI operations.

    Usage:
        with ai_span("content.analyze", "LLMContentAnalyzer") as span:
            span.set_attribute("analysis.type", "difficulty_assessment")
    """
    with get_tracer().start_as_current_span(name) as span:
        span.set_attribute("ai.component", component)
        for key, value in (attributes or {}).items():
            span.set_attribute(key, str(value) if value is not None else "")
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
