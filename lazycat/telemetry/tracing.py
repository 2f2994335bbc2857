from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from lazycat.config import TelemetrySettings
from lazycat.telemetry.logging import get_logger

_provider: TracerProvider | None = None


def configure_tracing(service_name: str, settings: TelemetrySettings) -> bool:
    """Install an OTLP/HTTP span exporter when an endpoint is configured.

    Returns whether spans are exported. Without an endpoint the API's no-op tracer
    stays in place and ``command.run`` spans cost nothing.
    """
    global _provider
    if _provider is not None:
        return True
    if not settings.otlp_endpoint:
        return False

    resource = Resource.create({SERVICE_NAME: service_name, "deployment.environment": settings.environment})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)
    _provider = provider
    get_logger(__name__).info("tracing.enabled", endpoint=settings.otlp_endpoint, service_name=service_name)
    return True


def shutdown_tracing() -> None:
    global _provider
    if _provider is None:
        return
    _provider.shutdown()
    _provider = None


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


__all__ = ["configure_tracing", "get_tracer", "shutdown_tracing"]
