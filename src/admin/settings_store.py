"""Key/value admin settings (e.g. `openrouter_key`)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from src.db.models import AdminSetting

MASK = "***"


class AdminSettingsStore:
    def __init__(self, engine: Engine):
        self._engine = engine

    def get_value(self, key: str) -> Optional[str]:
        with Session(self._engine) as session:
            row = session.get(AdminSetting, key)
            return row.value if row is not None else None

    def set_value(self, key: str, value: str, is_encrypted: bool = False) -> Dict[str, Any]:
        key = (key or "").strip()
        if not key:
            raise ValueError("setting key is required")
        with Session(self._engine) as session:
            row = session.get(AdminSetting, key)
            if row is None:
                row = AdminSetting(key=key)
            row.value = value or ""
            row.is_encrypted = 1 if is_encrypted else 0
            row.updated_at = datetime.now().isoformat()
            session.add(row)
            session.commit()
            session.refresh(row)
            return _public(row)

    def list_public(self) -> List[Dict[str, Any]]:
        """All settings; values flagged `is_encrypted` are masked."""
        with Session(self._engine) as session:
            rows = session.exec(select(AdminSetting).order_by(AdminSetting.key)).all()
            return [_public(r) for r in rows]


def _public(row: AdminSetting) -> Dict[str, Any]:
    return {
        "key": row.key,
        "value": MASK if row.is_encrypted and row.value else row.value,
        "is_encrypted": bool(row.is_encrypted),
        "updated_at": row.updated_at,
    }
