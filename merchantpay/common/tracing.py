"""Request tracing for the payments API.

Tracing is opt-in. Without an OTLP endpoint no provider is installed, the
global tracer stays a no-op and spans opened by the service record nothing.
"""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from merchantpay.common.config import Settings

# Probes and scrapes would drown out real traffic.
UNTRACED_URLS = "health,metrics"


def enable_tracing(app: FastAPI, settings: Settings) -> TracerProvider | None:
    """Install an OTLP-exporting provider and instrument `app`.

    Returns the provider so the caller can flush it on shutdown, or None when
    no endpoint is configured.
    """

    if not settings.otel_exporter_otlp_endpoint:
        return None

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.service_name, "service.namespace": "merchantpay"})
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=UNTRACED_URLS)
    return provider


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)
