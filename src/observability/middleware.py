"""
Request instrumentation: one span and one latency/count sample per HTTP call.

Metric labels use a path template rather than the raw path so chat ids,
document ids, user names and slash-containing model ids do not explode
label cardinality.
"""

import re
import time

from opentelemetry.trace import Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.observability.metrics import metrics
from src.observability.tracing import tracer

_UNMETERED = frozenset({"/metrics", "/health"})

# Checked in order; first match wins. Anything else only has numeric ids replaced.
_TEMPLATES = (
    (re.compile(r"^/llm-models/active/?$"), "/llm-models/active"),
    (re.compile(r"^/llm-models/.+$"), "/llm-models/{model_id}"),
    (re.compile(r"^/admin/users/[^/]+/credits/?$"), "/admin/users/{user_id}/credits"),
)
_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def _normalize_path(path: str) -> str:
    """e.g. /chats/42/messages -> /chats/{id}/messages, /llm-models/openai/gpt-4o -> /llm-models/{model_id}"""
    for pattern, template in _TEMPLATES:
        if pattern.match(path):
            return template
    return _NUMERIC_SEGMENT.sub("/{id}", path)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path in _UNMETERED:
            return await call_next(request)

        method = request.method
        route = _normalize_path(request.url.path)
        started = time.perf_counter()
        with tracer.start_as_current_span(
            f"{method} {route}",
            attributes={"http.method": method, "http.route": route},
        ) as span:
            response: Response = await call_next(request)
            status = response.status_code
            span.set_attribute("http.status_code", status)
            if status >= 500:
                span.set_status(Status(StatusCode.ERROR))

        metrics.http_requests_total.labels(method=method, endpoint=route, status_code=str(status)).inc()
        metrics.http_request_duration_seconds.labels(method=method, endpoint=route).observe(
            time.perf_counter() - started
        )
        return response
