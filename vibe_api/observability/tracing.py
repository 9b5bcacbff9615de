# vibe_api/observability/tracing.py
"""
OpenTelemetry tracing bootstrap.

- Initializes a TracerProvider named after ``SERVICE_NAME``.
- Uses the OTLP/HTTP exporter when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set,
  otherwise the Console exporter.
- Instruments FastAPI (per app) and redis (globally).
- Idempotent: safe to call multiple times.
"""
from __future__ import annotations

import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor

from vibe_api.config import Settings

_OTEL_INITIALIZED = False


def init_tracing(settings: Settings, app: FastAPI | None = None) -> trace.Tracer:
    """Initialize tracing and instrument ``app`` when given."""
    global _OTEL_INITIALIZED

    if not _OTEL_INITIALIZED:
        resource = Resource.create({"service.name": settings.SERVICE_NAME})
        provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(provider)

        if os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
        else:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        RedisInstrumentor().instrument()
        _OTEL_INITIALIZED = True

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)

    return trace.get_tracer(settings.SERVICE_NAME)
