from __future__ import annotations

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from adcheck.core.config import Settings


log = logging.getLogger(__name__)


def setup_telemetry(app: FastAPI, settings: Settings) -> bool:
    """
    Export request spans over OTLP/HTTP when an endpoint is configured.
    Returns False (and leaves the app untouched) otherwise.
    """
    if not settings.otlp_endpoint:
        log.info("telemetry: disabled (no otlp_endpoint)")
        return False

    resource = Resource.create({"service.name": settings.service_name, "deployment.environment": settings.env})
    provider = TracerProvider(resource=resource)
    endpoint = settings.otlp_endpoint.rstrip("/")
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)
    log.info("telemetry: exporting spans to %s", endpoint)
    return True
