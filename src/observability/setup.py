"""
One-call observability wiring: middleware + /metrics endpoint + app info.
"""

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src.log import get_logger
from src.observability.metrics import metrics
from src.observability.middleware import ObservabilityMiddleware
from src.observability.tracing import SERVICE_NAME, SERVICE_VERSION

logger = get_logger(__name__)


def setup_observability(app: FastAPI) -> None:
    """Call after routers are registered and before the app starts serving."""
    app.add_middleware(ObservabilityMiddleware)

    @app.get("/metrics", include_in_schema=False)
    def prometheus_metrics():
        return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    metrics.app_info.info({"version": SERVICE_VERSION, "service": SERVICE_NAME})
    logger.info("[observability] middleware + /metrics registered")
