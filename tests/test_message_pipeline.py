"""
Message pipeline: ordering, partial persistence on failure, settlement,
and the end-to-end credit scenarios.
"""

import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.chat.errors import ChatNotFoundError, ForbiddenError, InsufficientCreditsError, UpstreamError
from src.chat.pipeline import MessagePipeline, SendMessageCommand
from src.chat.prompts import system_prompt
from src.credits.ledger import CreditLedger
from src.observability import metrics

from conftest import FakeModelClient

PAID_MODEL = "openai/gpt-4o-mini"


@pytest.fixture
def paid_model(registry):
    registry.create(PAID_MODEL, "GPT-4o mini", cost_per_message=5)
    return PAID_MODEL


@pytest.fixture
def chat(store):
    return store.create_chat("alice", mode="research")


def _pipeline(ledger, store, registry, client, **kwargs):
    kwargs.setdefault("timeout_seconds", 5)
    return MessagePipeline(ledger, store, registry, client, **kwargs)


def _send(pipeline, chat_id, content="Halo", user_id="alice", mode="research", model_id=PAID_MODEL):
    return pipeline.send(SendMessageCommand(
        chat_id=chat_id, user_id=user_id, content=content, mode=mode, model_id=model_id,
    ))


# ── conversation store ──

def test_chat_ownership_helpers(store):
    chat = store.create_chat("alice", mode="edit")
    assert chat["title"] == "Edit Dokumen"
    assert store.chat_belongs_to_user(chat["id"], "alice") is True
    assert store.chat_belongs_to_user(chat["id"], "bob") is False
    assert store.chat_belongs_to_user(9999, "alice") is False


def test_append_rejects_unknown_role(store, chat):
    with pytest.raises(ValueError):
        store.append_message(chat["id"], "system", "x")


def test_delete_chat_removes_messages(store, chat):
    store.append_message(chat["id"], "user", "A")
    assert store.delete_chat(chat["id"], "bob") is False
    assert store.delete_chat(chat["id"], "alice") is True
    assert store.get_chat(chat["id"]) is None
    assert store.get_messages(chat["id"]) == []


# ── command validation ──

def test_command_normalizes_mode_alias():
    cmd = SendMessageCommand(chat_id=1, user_id="alice", content="x", mode="riset")
    assert cmd.mode == "research"


def test_command_rejects_blank_content():
    with pytest.raises(ValueError):
        SendMessageCommand(chat_id=1, user_id="alice", content="   ")


def test_command_rejects_unknown_mode():
    with pytest.raises(ValueError):
        SendMessageCommand(chat_id=1, user_id="alice", content="x", mode="translate")


def test_command_blank_model_id_means_default():
    assert SendMessageCommand(chat_id=1, user_id="alice", content="x", model_id="  ").model_id is None


def test_pipeline_rejects_non_positive_timeout(ledger, store, registry, model_client):
    with pytest.raises(ValueError):
        MessagePipeline(ledger, store, registry, model_client, timeout_seconds=0)


# ── happy path ──

def test_end_to_end_deducts_model_cost(ledger, store, registry, model_client, chat, paid_model):
    pipeline = _pipeline(ledger, store, registry, model_client)

    first = _send(pipeline, chat["id"], "Apa itu permakultur?")
    assert first.credits_remaining == 95
    assert first.cost == 5
    assert first.assistant_message["content"] == model_client.reply
    assert first.assistant_message["role"] == "assistant"
    assert first.assistant_message["model_id"] == paid_model
    assert first.user_message["role"] == "user"

    second = _send(pipeline, chat["id"], "Lanjutkan")
    assert second.credits_remaining == 90
    assert ledger.get_balance("alice").used == 10


def test_unknown_model_charges_fallback_cost(ledger, store, registry, model_client, chat):
    result = _send(_pipeline(ledger, store, registry, model_client), chat["id"], model_id="no/such-model")
    assert result.cost == 1
    assert result.credits_remaining == 99


def _model_labels(counter):
    return {s.labels["model"] for family in counter.collect() for s in family.samples}


def test_metric_labels_only_use_registered_model_ids(ledger, store, registry, model_client, chat, paid_model):
    pipeline = _pipeline(ledger, store, registry, model_client)
    before = _model_labels(metrics.credits_deducted_total)

    for _ in range(20):
        _send(pipeline, chat["id"], model_id=f"junk-{uuid.uuid4()}")
    _send(pipeline, chat["id"], model_id=None)
    _send(pipeline, chat["id"])

    added = _model_labels(metrics.credits_deducted_total) - before
    assert added <= {"unregistered", "default", paid_model}
    assert [c["metrics_label"] for c in model_client.calls[-3:]] == ["unregistered", "default", paid_model]


def test_result_to_dict(ledger, store, registry, model_client, chat, paid_model):
    body = _send(_pipeline(ledger, store, registry, model_client), chat["id"]).to_dict()
    assert set(body) == {"user_message", "assistant_message", "credits_remaining", "cost"}


# ── ordering ──

def test_full_history_passed_in_persisted_order(ledger, store, registry, model_client, chat, paid_model):
    store.append_message(chat["id"], "user", "A")
    store.append_message(chat["id"], "assistant", "B")

    _send(_pipeline(ledger, store, registry, model_client), chat["id"], "C", mode="create")

    call = model_client.calls[0]
    assert call["messages"] == [
        {"role": "user", "content": "A"},
        {"role": "assistant", "content": "B"},
        {"role": "user", "content": "C"},
    ]
    assert call["system_prompt"] == system_prompt("create")
    assert call["model_id"] == paid_model

    roles = [m["role"] for m in store.get_messages(chat["id"])]
    assert roles == ["user", "assistant", "user", "assistant"]


# ── titles ──

def test_first_exchange_sets_descriptive_title(ledger, store, registry, model_client, chat, paid_model):
    _send(_pipeline(ledger, store, registry, model_client), chat["id"], "Dampak perubahan iklim di pesisir")
    assert store.get_chat(chat["id"])["title"] == "Riset Perubahan Iklim"


def test_later_exchanges_keep_title(ledger, store, registry, model_client, chat, paid_model):
    store.update_title(chat["id"], "Judul Saya")
    store.append_message(chat["id"], "user", "A")
    store.append_message(chat["id"], "assistant", "B")
    _send(_pipeline(ledger, store, registry, model_client), chat["id"], "Topik pendidikan")
    assert store.get_chat(chat["id"])["title"] == "Judul Saya"


# ── ownership ──

def test_foreign_chat_is_forbidden_and_untouched(ledger, store, registry, model_client, paid_model):
    bobs_chat = store.create_chat("bob")
    pipeline = _pipeline(ledger, store, registry, model_client)

    with pytest.raises(ForbiddenError):
        _send(pipeline, bobs_chat["id"], user_id="alice")

    assert store.get_messages(bobs_chat["id"]) == []
    assert model_client.calls == []
    assert ledger.get_balance("alice").used == 0


def test_missing_chat_reported_as_forbidden(ledger, store, registry, model_client):
    with pytest.raises(ChatNotFoundError) as exc_info:
        _send(_pipeline(ledger, store, registry, model_client), 9999)
    assert exc_info.value.status_code == 403
    assert exc_info.value.to_dict()["error"] == "ForbiddenError"


# ── advisory denial ──

def test_exhausted_balance_fails_fast(engine, store, registry, model_client, chat, paid_model):
    ledger = CreditLedger(engine, default_allowance=3)
    ledger.deduct("alice", 3)

    with pytest.raises(InsufficientCreditsError) as exc_info:
        _send(_pipeline(ledger, store, registry, model_client), chat["id"])

    err = exc_info.value
    assert err.remaining == 0
    assert err.required == 5
    assert err.stage == "advisory"
    assert err.assistant_message is None
    assert store.get_messages(chat["id"]) == []
    assert model_client.calls == []


def test_free_model_allowed_with_zero_balance(engine, store, registry, model_client, chat):
    registry.create("free/model", "Free", cost_per_message=0, is_free=True)
    ledger = CreditLedger(engine, default_allowance=0)
    result = _send(_pipeline(ledger, store, registry, model_client), chat["id"], model_id="free/model")
    assert result.cost == 0
    assert result.credits_remaining == 0


# ── upstream failures ──

@pytest.mark.parametrize("error, code", [
    (UpstreamError("rate_limited", "429 from provider"), "rate_limited"),
    (RuntimeError("connection reset"), "model_error"),
])
def test_model_failure_keeps_user_message_and_charges_nothing(
    ledger, store, registry, chat, paid_model, error, code,
):
    client = FakeModelClient(error=error)
    with pytest.raises(UpstreamError) as exc_info:
        _send(_pipeline(ledger, store, registry, client), chat["id"], "Pertanyaan penting")

    assert exc_info.value.code == code
    assert exc_info.value.retryable is True
    messages = store.get_messages(chat["id"])
    assert [(m["role"], m["content"]) for m in messages] == [("user", "Pertanyaan penting")]
    assert ledger.get_balance("alice").used == 0


def test_empty_reply_is_upstream_error(ledger, store, registry, chat, paid_model):
    client = FakeModelClient(reply="   ")
    with pytest.raises(UpstreamError) as exc_info:
        _send(_pipeline(ledger, store, registry, client), chat["id"])
    assert exc_info.value.code == "empty_response"
    assert [m["role"] for m in store.get_messages(chat["id"])] == ["user"]


def test_model_timeout_surfaces_retryable_error(ledger, store, registry, chat, paid_model):
    client = FakeModelClient(delay=10)
    executor = ThreadPoolExecutor(max_workers=1)
    pipeline = _pipeline(ledger, store, registry, client, timeout_seconds=0.2, executor=executor)
    try:
        with pytest.raises(UpstreamError) as exc_info:
            _send(pipeline, chat["id"], "Halo?")
    finally:
        client.release.set()
        executor.shutdown(wait=True)

    assert exc_info.value.code == "timeout"
    assert exc_info.value.retryable is True
    # The late reply is discarded: no phantom assistant message, no charge.
    assert [m["role"] for m in store.get_messages(chat["id"])] == ["user"]
    assert ledger.get_balance("alice").used == 0


# ── settlement ──

class _DrainingClient(FakeModelClient):
    """Spends the user's credits mid-call, like a concurrent request would."""

    def __init__(self, ledger, amount):
        super().__init__(reply="Balasan yang sudah dibuat.")
        self._ledger = ledger
        self._amount = amount

    def complete(self, system_prompt, messages, model_id, metrics_label=None):
        self._ledger.deduct("alice", self._amount)
        return super().complete(system_prompt, messages, model_id, metrics_label)


def test_settlement_overdraw_returns_stored_reply(ledger, store, registry, chat, paid_model):
    client = _DrainingClient(ledger, amount=98)

    with pytest.raises(InsufficientCreditsError) as exc_info:
        _send(_pipeline(ledger, store, registry, client), chat["id"])

    err = exc_info.value
    assert err.stage == "settlement"
    assert err.remaining == 2
    assert err.required == 5
    assert err.assistant_message["content"] == "Balasan yang sudah dibuat."
    assert err.to_dict()["assistant_message"]["id"] == err.assistant_message["id"]

    # Reply stays stored; the balance is never pushed past its total.
    assert [m["role"] for m in store.get_messages(chat["id"])] == ["user", "assistant"]
    balance = ledger.get_balance("alice")
    assert balance.used == 98
    assert balance.used <= balance.total
