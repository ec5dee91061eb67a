"""
Shared fixtures: a throwaway SQLite database, stores built on it, a scripted
model client, and an API client wired to all of them.
"""

import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.chat.store import ConversationStore  # noqa: E402
from src.credits.ledger import CreditLedger  # noqa: E402
from src.db.engine import create_db_engine, init_db  # noqa: E402
from src.llm.llm_manager import ModelClient  # noqa: E402
from src.llm.model_registry import ModelRegistry  # noqa: E402


class FakeModelClient(ModelClient):
    """Records every call; replies with `reply`, or raises `error` when set."""

    def __init__(self, reply: str = "Jawaban dari model.", error: Optional[Exception] = None,
                 delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: List[Dict] = []
        self.release = threading.Event()

    def complete(self, system_prompt, messages, model_id, metrics_label=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": list(messages),
            "model_id": model_id,
            "metrics_label": metrics_label,
        })
        if self.delay:
            self.release.wait(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads share the same database."""
    eng = create_db_engine(f"sqlite:///{tmp_path / 'mitra_test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def ledger(engine):
    return CreditLedger(engine, default_allowance=100)


@pytest.fixture
def store(engine):
    return ConversationStore(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(engine, clock):
    return ModelRegistry(engine, fallback_cost=1, cache_ttl=5, clock=clock)


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def api(engine, registry, model_client):
    """
    TestClient with the database, registry and model client overridden.
    Authenticate with `api.login_as(user_id, is_admin=False)`.
    """
    from fastapi.testclient import TestClient

    from src.api import deps
    from src.api.server import app
    from src.auth.users import Identity

    state = {"identity": Identity(user_id="alice", is_admin=False)}

    app.dependency_overrides[deps.get_db_engine] = lambda: engine
    app.dependency_overrides[deps.get_model_registry] = lambda: registry
    app.dependency_overrides[deps.get_model_client] = lambda: model_client
    app.dependency_overrides[deps.get_current_identity] = lambda: state["identity"]

    # No `with` block: the lifespan would touch the global engine.
    client = TestClient(app)

    def login_as(user_id: str, is_admin: bool = False) -> None:
        state["identity"] = Identity(user_id=user_id, is_admin=is_admin)

    client.login_as = login_as
    yield client
    app.dependency_overrides.clear()
