"""
Credit ledger:
- lazy creation with the default allowance
- advisory authorize vs. atomic deduct
- concurrent deductions never overdraw
"""

import threading

import pytest

from src.chat.errors import InsufficientCreditsError
from src.credits.ledger import CreditLedger


# ── balances ──

def test_first_read_creates_default_allowance(ledger):
    balance = ledger.get_balance("alice")
    assert (balance.total, balance.used, balance.remaining) == (100, 0, 100)


def test_first_read_is_idempotent(ledger):
    ledger.get_balance("alice")
    ledger.deduct("alice", 10)
    # A second "first use" must not reset the row.
    assert ledger.get_balance("alice").remaining == 90
    assert len(ledger.list_balances()) == 1


def test_custom_default_allowance(engine):
    assert CreditLedger(engine, default_allowance=3).get_balance("bob").remaining == 3


def test_to_dict_shape(ledger):
    assert ledger.get_balance("alice").to_dict() == {
        "user_id": "alice",
        "total_credits": 100,
        "used_credits": 0,
        "remaining": 100,
    }


# ── authorize ──

def test_authorize_is_advisory_and_reserves_nothing(ledger):
    assert ledger.authorize("alice", 100) is True
    assert ledger.authorize("alice", 100) is True
    assert ledger.get_balance("alice").used == 0


def test_authorize_rejects_cost_above_remaining(ledger):
    ledger.deduct("alice", 98)
    assert ledger.authorize("alice", 2) is True
    assert ledger.authorize("alice", 3) is False


def test_zero_cost_always_authorized(engine):
    broke = CreditLedger(engine, default_allowance=0)
    assert broke.authorize("carol", 0) is True


def test_negative_cost_rejected(ledger):
    with pytest.raises(ValueError):
        ledger.authorize("alice", -1)
    with pytest.raises(ValueError):
        ledger.deduct("alice", -1)


# ── deduct ──

def test_deduct_updates_used_credits(ledger):
    balance = ledger.deduct("alice", 5)
    assert (balance.used, balance.remaining) == (5, 95)


def test_deduct_to_exactly_zero(ledger):
    assert ledger.deduct("alice", 100).remaining == 0


def test_deduct_beyond_balance_raises_and_changes_nothing(ledger):
    ledger.deduct("alice", 97)
    with pytest.raises(InsufficientCreditsError) as exc_info:
        ledger.deduct("alice", 5)
    err = exc_info.value
    assert err.stage == "settlement"
    assert (err.remaining, err.required) == (3, 5)
    assert ledger.get_balance("alice").used == 97


def test_zero_cost_deduct_is_noop(ledger):
    assert ledger.deduct("alice", 0).remaining == 100


# ── grant ──

def test_grant_raises_total(ledger):
    ledger.deduct("alice", 100)
    balance = ledger.grant("alice", 50)
    assert (balance.total, balance.used, balance.remaining) == (150, 100, 50)


def test_grant_negative_rejected(ledger):
    with pytest.raises(ValueError):
        ledger.grant("alice", -5)


# ── concurrency ──

def test_concurrent_deductions_never_overdraw(engine):
    """20 threads each try to spend 10 from a balance of 100: exactly 10 succeed."""
    ledger = CreditLedger(engine, default_allowance=100)
    ledger.get_balance("alice")

    successes, failures = [], []
    barrier = threading.Barrier(20)

    def spend():
        barrier.wait()
        try:
            ledger.deduct("alice", 10)
            successes.append(1)
        except InsufficientCreditsError:
            failures.append(1)

    threads = [threading.Thread(target=spend) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    balance = ledger.get_balance("alice")
    assert len(successes) == 10
    assert len(failures) == 10
    assert balance.used == 100
    assert balance.remaining == 0


def test_concurrent_first_use_creates_single_row(engine):
    ledger = CreditLedger(engine, default_allowance=100)
    barrier = threading.Barrier(8)
    results = []

    def first_use():
        barrier.wait()
        results.append(ledger.get_balance("newcomer").remaining)

    threads = [threading.Thread(target=first_use) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == [100] * 8
    assert [b.user_id for b in ledger.list_balances()] == ["newcomer"]
