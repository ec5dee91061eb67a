"""
FastAPI dependencies: database engine, model client, identity, and the
pipeline collaborators built on top of them.

Tests swap the first three through `app.dependency_overrides`.
"""

import threading
from typing import Dict, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.engine import Engine

from config.settings import settings
from src.auth.session import verify_token
from src.auth.users import Identity, UserStore
from src.chat.pipeline import MessagePipeline
from src.chat.store import ConversationStore
from src.credits.ledger import CreditLedger
from src.db.engine import get_engine
from src.llm.llm_manager import ModelClient, build_model_client
from src.llm.model_registry import ModelRegistry
from src.utils.limiter import get_global_executor

_model_client: Optional[ModelClient] = None
_registries: Dict[Engine, ModelRegistry] = {}
_lock = threading.Lock()


def get_db_engine() -> Engine:
    return get_engine()


def get_model_client(engine: Engine = Depends(get_db_engine)) -> ModelClient:
    global _model_client
    with _lock:
        if _model_client is None:
            _model_client = build_model_client(engine)
        return _model_client


def get_model_registry(engine: Engine = Depends(get_db_engine)) -> ModelRegistry:
    """One registry per engine so its read cache survives across requests."""
    with _lock:
        registry = _registries.get(engine)
        if registry is None:
            registry = _registries[engine] = ModelRegistry(engine)
        return registry


def get_ledger(engine: Engine = Depends(get_db_engine)) -> CreditLedger:
    return CreditLedger(engine)


def get_conversation_store(engine: Engine = Depends(get_db_engine)) -> ConversationStore:
    return ConversationStore(engine)


def get_pipeline(
    ledger: CreditLedger = Depends(get_ledger),
    store: ConversationStore = Depends(get_conversation_store),
    registry: ModelRegistry = Depends(get_model_registry),
    model_client: ModelClient = Depends(get_model_client),
) -> MessagePipeline:
    return MessagePipeline(
        ledger, store, registry, model_client,
        timeout_seconds=settings.perf_llm.timeout_seconds,
        executor=get_global_executor(settings.perf_llm.max_workers),
    )


# ── identity ──

def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[7:].strip() or None


def get_current_identity(
    token: Optional[str] = Depends(get_bearer_token),
    engine: Engine = Depends(get_db_engine),
) -> Identity:
    """Require a valid token for an active user."""
    user_id = verify_token(engine, token) if token else None
    identity = UserStore(engine).get_identity(user_id) if user_id else None
    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid or missing token")
    return identity


def get_current_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
