"""
Observability: OpenTelemetry tracing + Prometheus metrics.

Usage:
    from src.observability import setup_observability, metrics, tracer

    # FastAPI app factory
    setup_observability(app)

    # manual instrumentation
    with tracer.start_as_current_span("my_operation"):
        ...

    metrics.credits_deducted_total.labels(model=model_id).inc(cost)
"""

from src.observability.setup import setup_observability
from src.observability.metrics import metrics
from src.observability.tracing import tracer, traced

__all__ = ["setup_observability", "metrics", "tracer", "traced"]
