"""
OpenTelemetry tracing setup.

Provides the global tracer:
    from src.observability import tracer
    with tracer.start_as_current_span("chat.pipeline"):
        ...

Console export is off unless MITRA_TRACE_CONSOLE=1; production deployments
can attach an OTLP exporter to the same provider.
"""

import functools
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

SERVICE_NAME = "mitra-chat"
SERVICE_VERSION = "0.1.0"

_resource = Resource.create({"service.name": SERVICE_NAME, "service.version": SERVICE_VERSION})

_provider = TracerProvider(resource=_resource)

if os.getenv("MITRA_TRACE_CONSOLE", "0") == "1":
    _provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

trace.set_tracer_provider(_provider)

tracer = trace.get_tracer(SERVICE_NAME, SERVICE_VERSION)


def traced(name: str):
    """Run the decorated function inside a span called `name`."""

    def _decorator(fn):
        @functools.wraps(fn)
        def _wrapper(*args, **kwargs):
            with tracer.start_as_current_span(name):
                return fn(*args, **kwargs)

        return _wrapper

    return _decorator
