"""User accounts (username = user id) with bcrypt hashes and an admin flag."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from src.auth.password import hash_password, verify_password
from src.db.models import User


@dataclass(frozen=True)
class Identity:
    """The authenticated caller as seen by the chat pipeline."""
    user_id: str
    is_admin: bool = False


class UserExistsError(ValueError):
    pass


class UserStore:
    def __init__(self, engine: Engine):
        self._engine = engine

    def create_user(self, user_id: str, password: str, is_admin: bool = False) -> Dict[str, Any]:
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValueError("user_id is required")
        row = User(user_id=user_id, password_hash=hash_password(password), is_admin=1 if is_admin else 0)
        try:
            with Session(self._engine) as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_dict(row)
        except IntegrityError:
            raise UserExistsError(f"user {user_id!r} already exists") from None

    def get_identity(self, user_id: str) -> Optional[Identity]:
        """None for unknown or deactivated users."""
        with Session(self._engine) as session:
            row = session.get(User, user_id)
            if row is None or not row.is_active:
                return None
            return Identity(user_id=row.user_id, is_admin=bool(row.is_admin))

    def authenticate(self, user_id: str, password: str) -> Optional[Identity]:
        with Session(self._engine) as session:
            row = session.get(User, (user_id or "").strip())
            if row is None or not row.is_active:
                return None
            if not verify_password(password, row.password_hash):
                return None
            return Identity(user_id=row.user_id, is_admin=bool(row.is_admin))

    def set_password(self, user_id: str, password: str) -> bool:
        with Session(self._engine) as session:
            row = session.get(User, user_id)
            if row is None:
                return False
            row.password_hash = hash_password(password)
            row.updated_at = datetime.now().isoformat()
            session.add(row)
            session.commit()
            return True

    def list_users(self) -> List[Dict[str, Any]]:
        with Session(self._engine) as session:
            rows = session.exec(select(User).order_by(User.created_at)).all()
            return [_to_dict(r) for r in rows]


def _to_dict(row: User) -> Dict[str, Any]:
    return {
        "user_id": row.user_id,
        "is_admin": bool(row.is_admin),
        "is_active": bool(row.is_active),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }
