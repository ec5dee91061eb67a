"""
Model-cost registry: which models can be selected and what one message costs.

Backed by the `llm_models` table. Reads go through a short TTL snapshot of
the whole table (read-heavy, admin-mutated); admin mutations invalidate it
immediately in this process, other processes see the change within
`registry.cache_ttl_seconds`.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from src.db.models import LLMModel

_log = logging.getLogger(__name__)


# ============================================================
# Data structures
# ============================================================

@dataclass(frozen=True)
class ModelDescriptor:
    model_id: str
    display_name: str
    provider: str
    cost_per_message: int
    is_active: bool = True
    is_free: bool = False

    @classmethod
    def from_row(cls, row: LLMModel) -> "ModelDescriptor":
        return cls(
            model_id=row.model_id,
            display_name=row.display_name,
            provider=row.provider,
            cost_per_message=int(row.cost_per_message),
            is_active=bool(row.is_active),
            is_free=bool(row.is_free),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _CacheEntry:
    models: Dict[str, ModelDescriptor]
    fetched_at: float


class ModelExistsError(ValueError):
    pass


# Fields an admin may change through `update`.
_MUTABLE_FIELDS = ("display_name", "provider", "cost_per_message", "is_active", "is_free")


# ============================================================
# Registry
# ============================================================

class ModelRegistry:
    def __init__(
        self,
        engine: Engine,
        fallback_cost: Optional[int] = None,
        cache_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if fallback_cost is None or cache_ttl is None:
            from config.settings import settings
            if fallback_cost is None:
                fallback_cost = settings.credits.fallback_cost
            if cache_ttl is None:
                cache_ttl = settings.registry.cache_ttl_seconds
        self._engine = engine
        self.fallback_cost = int(fallback_cost)
        self._cache_ttl = float(cache_ttl)
        self._clock = clock
        self._cache: Optional[_CacheEntry] = None
        self._lock = threading.Lock()

    # ---------------- reads ----------------

    def _snapshot(self) -> Dict[str, ModelDescriptor]:
        with self._lock:
            entry = self._cache
            if entry is not None and (self._clock() - entry.fetched_at) < self._cache_ttl:
                return entry.models
        with Session(self._engine) as session:
            rows = session.exec(select(LLMModel)).all()
            models = {r.model_id: ModelDescriptor.from_row(r) for r in rows}
        with self._lock:
            self._cache = _CacheEntry(models=models, fetched_at=self._clock())
        return models

    def list_active(self) -> List[ModelDescriptor]:
        """Active models ordered by display name."""
        return sorted(
            (m for m in self._snapshot().values() if m.is_active),
            key=lambda m: (m.display_name.lower(), m.model_id),
        )

    def list_all(self) -> List[ModelDescriptor]:
        return sorted(self._snapshot().values(), key=lambda m: (m.display_name.lower(), m.model_id))

    def get(self, model_id: Optional[str]) -> Optional[ModelDescriptor]:
        if not model_id:
            return None
        return self._snapshot().get(model_id)

    def resolve_cost(self, model_id: Optional[str]) -> int:
        """Cost of one message on `model_id`; unknown or empty ids cost `fallback_cost`."""
        descriptor = self.get(model_id)
        if descriptor is None:
            if model_id:
                _log.debug("unknown model %r, charging fallback cost %s", model_id, self.fallback_cost)
            return self.fallback_cost
        return descriptor.cost_per_message

    # ---------------- admin mutations ----------------

    def invalidate_cache(self) -> None:
        with self._lock:
            self._cache = None

    def create(
        self,
        model_id: str,
        display_name: str,
        provider: str = "openrouter",
        cost_per_message: int = 0,
        is_active: bool = True,
        is_free: bool = False,
    ) -> ModelDescriptor:
        model_id = (model_id or "").strip()
        if not model_id:
            raise ValueError("model_id is required")
        if cost_per_message < 0:
            raise ValueError("cost_per_message must be >= 0")
        row = LLMModel(
            model_id=model_id,
            display_name=display_name or model_id,
            provider=provider,
            cost_per_message=int(cost_per_message),
            is_active=1 if is_active else 0,
            is_free=1 if is_free else 0,
        )
        try:
            with Session(self._engine) as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                descriptor = ModelDescriptor.from_row(row)
        except IntegrityError:
            raise ModelExistsError(f"model {model_id!r} already registered") from None
        finally:
            self.invalidate_cache()
        _log.info("model registered: %s cost=%s", model_id, cost_per_message)
        return descriptor

    def upsert(self, model_id: str, **fields: Any) -> ModelDescriptor:
        """Create `model_id` or update it in place (used by bootstrap seeding)."""
        updated = self.update(model_id, **fields)
        if updated is not None:
            return updated
        return self.create(model_id, fields.pop("display_name", model_id), **fields)

    def update(self, model_id: str, **fields: Any) -> Optional[ModelDescriptor]:
        """Partial update; None when the model does not exist."""
        unknown = set(fields) - set(_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"unknown model fields: {sorted(unknown)}")
        if fields.get("cost_per_message") is not None and fields["cost_per_message"] < 0:
            raise ValueError("cost_per_message must be >= 0")
        with Session(self._engine) as session:
            row = session.exec(select(LLMModel).where(LLMModel.model_id == model_id)).first()
            if row is None:
                return None
            for name, value in fields.items():
                if value is None:
                    continue
                if name in ("is_active", "is_free"):
                    value = 1 if value else 0
                setattr(row, name, value)
            row.updated_at = datetime.now().isoformat()
            session.add(row)
            session.commit()
            session.refresh(row)
            descriptor = ModelDescriptor.from_row(row)
        self.invalidate_cache()
        _log.info("model updated: %s %s", model_id, fields)
        return descriptor

    def deactivate(self, model_id: str) -> Optional[ModelDescriptor]:
        return self.update(model_id, is_active=False)
