"""
Metrics endpoint, path normalization, and the bounded-wait helper.
"""

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.observability.middleware import _normalize_path
from src.utils.limiter import CallTimeout, call_with_timeout


@pytest.mark.parametrize("path, expected", [
    ("/chats/42/messages", "/chats/{id}/messages"),
    ("/documents/7/download", "/documents/{id}/download"),
    ("/admin/users/bob/credits", "/admin/users/{user_id}/credits"),
    ("/llm-models/openai/gpt-4o-mini", "/llm-models/{model_id}"),
    ("/llm-models/active", "/llm-models/active"),
    ("/credits", "/credits"),
])
def test_normalize_path(path, expected):
    assert _normalize_path(path) == expected


def test_metrics_endpoint_reports_message_outcomes(api):
    chat = api.post("/chats", json={}).json()
    api.post(f"/chats/{chat['id']}/messages", json={"content": "Halo"})

    body = api.get("/metrics").text
    assert 'mitra_messages_total{mode="research",outcome="ok"}' in body
    assert "mitra_http_requests_total" in body


def test_call_with_timeout_returns_result():
    assert call_with_timeout(lambda a, b=0: a + b, 1, b=2, timeout=1) == 3


def test_call_with_timeout_propagates_errors():
    def boom():
        raise KeyError("x")

    with pytest.raises(KeyError):
        call_with_timeout(boom, timeout=1)


def test_call_with_timeout_expires():
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        with pytest.raises(CallTimeout) as exc_info:
            call_with_timeout(time.sleep, 0.5, timeout=0.05, executor=executor)
        assert exc_info.value.timeout == 0.05
    finally:
        executor.shutdown(wait=True)


def test_log_context_renders_bound_fields():
    import logging

    from src.log import log_context
    from src.log.log_manager import ContextFilter

    def _ctx():
        record = logging.LogRecord("src.test", logging.INFO, __file__, 1, "msg", None, None)
        ContextFilter().filter(record)
        return record.ctx

    assert _ctx() == "-"
    with log_context(user="alice", chat=12):
        with log_context(model=None):
            assert _ctx() == "user=alice chat=12"
    assert _ctx() == "-"


def test_call_with_timeout_carries_log_context():
    from src.log import log_context
    from src.log.log_manager import _CONTEXT

    with log_context(user="alice"):
        seen = call_with_timeout(_CONTEXT.get, timeout=1)
    assert seen == {"user": "alice"}
