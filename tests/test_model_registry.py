"""
Model-cost registry: cost resolution with fallback, listing, and the
TTL snapshot cache.
"""

import pytest

from src.llm.model_registry import ModelExistsError, ModelRegistry


@pytest.fixture
def seeded(registry):
    registry.create("openai/gpt-4o-mini", "GPT-4o mini", cost_per_message=5)
    registry.create("meta-llama/llama-3.2-3b-instruct:free", "Llama 3.2 3B", cost_per_message=0, is_free=True)
    registry.create("anthropic/claude-3.5-haiku", "Claude 3.5 Haiku", cost_per_message=8, is_active=False)
    return registry


# ── resolve_cost ──

def test_resolve_cost_known_model(seeded):
    assert seeded.resolve_cost("openai/gpt-4o-mini") == 5


def test_resolve_cost_free_model(seeded):
    assert seeded.resolve_cost("meta-llama/llama-3.2-3b-instruct:free") == 0


@pytest.mark.parametrize("model_id", ["nonexistent-model-id", None, ""])
def test_resolve_cost_falls_back_for_unknown_or_missing(seeded, model_id):
    assert seeded.resolve_cost(model_id) == 1


def test_inactive_model_keeps_its_cost(seeded):
    assert seeded.resolve_cost("anthropic/claude-3.5-haiku") == 8


# ── listing ──

def test_list_active_sorted_by_display_name(seeded):
    names = [m.display_name for m in seeded.list_active()]
    assert names == ["GPT-4o mini", "Llama 3.2 3B"]


def test_list_all_includes_inactive(seeded):
    assert len(seeded.list_all()) == 3


def test_duplicate_model_rejected(seeded):
    with pytest.raises(ModelExistsError):
        seeded.create("openai/gpt-4o-mini", "again", cost_per_message=1)


def test_negative_cost_rejected(registry):
    with pytest.raises(ValueError):
        registry.create("x/y", "X", cost_per_message=-1)


# ── mutations ──

def test_update_changes_cost_immediately(seeded):
    seeded.update("openai/gpt-4o-mini", cost_per_message=7)
    assert seeded.resolve_cost("openai/gpt-4o-mini") == 7


def test_update_missing_returns_none(seeded):
    assert seeded.update("missing/model", cost_per_message=2) is None


def test_update_unknown_field_rejected(seeded):
    with pytest.raises(ValueError):
        seeded.update("openai/gpt-4o-mini", price=3)


def test_deactivate_hides_from_active_list(seeded):
    seeded.deactivate("openai/gpt-4o-mini")
    assert [m.model_id for m in seeded.list_active()] == ["meta-llama/llama-3.2-3b-instruct:free"]


def test_upsert_creates_then_updates(registry):
    registry.upsert("google/gemini-2.0-flash-001", display_name="Gemini", cost_per_message=3)
    registry.upsert("google/gemini-2.0-flash-001", cost_per_message=4)
    descriptor = registry.get("google/gemini-2.0-flash-001")
    assert descriptor.display_name == "Gemini"
    assert descriptor.cost_per_message == 4


# ── cache ──

def test_cache_hides_foreign_writes_until_ttl(engine, seeded, clock):
    assert seeded.resolve_cost("openai/gpt-4o-mini") == 5

    # Another process (another registry instance) changes the price.
    other = ModelRegistry(engine, fallback_cost=1, cache_ttl=5, clock=clock)
    other.update("openai/gpt-4o-mini", cost_per_message=9)

    clock.advance(4)
    assert seeded.resolve_cost("openai/gpt-4o-mini") == 5
    clock.advance(2)
    assert seeded.resolve_cost("openai/gpt-4o-mini") == 9


def test_invalidate_cache_forces_reload(engine, seeded):
    seeded.resolve_cost("openai/gpt-4o-mini")
    ModelRegistry(engine, fallback_cost=1, cache_ttl=5).update("openai/gpt-4o-mini", cost_per_message=2)
    seeded.invalidate_cache()
    assert seeded.resolve_cost("openai/gpt-4o-mini") == 2


def test_descriptor_to_dict(seeded):
    d = seeded.get("openai/gpt-4o-mini").to_dict()
    assert d["model_id"] == "openai/gpt-4o-mini"
    assert d["cost_per_message"] == 5
    assert d["is_active"] is True
