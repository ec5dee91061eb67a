"""
Per-user credit ledger.

Rows are created lazily with the configured opening allowance. Deduction is
a single conditional UPDATE, so concurrent deductions for one user behave
like a serial schedule: the statement only matches while
`used_credits + cost <= total_credits` still holds at write time, and zero
affected rows means the balance was exhausted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from src.chat.errors import InsufficientCreditsError
from src.db.models import UserCredit

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditBalance:
    user_id: str
    total: int
    used: int

    @property
    def remaining(self) -> int:
        return self.total - self.used

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total_credits": self.total,
            "used_credits": self.used,
            "remaining": self.remaining,
        }


class CreditLedger:
    def __init__(self, engine: Engine, default_allowance: Optional[int] = None):
        if default_allowance is None:
            from config.settings import settings
            default_allowance = settings.credits.default_allowance
        if default_allowance < 0:
            raise ValueError("default_allowance must be >= 0")
        self._engine = engine
        self.default_allowance = int(default_allowance)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    @staticmethod
    def _read(conn: Connection, user_id: str) -> Optional[CreditBalance]:
        row = conn.execute(
            select(UserCredit.total_credits, UserCredit.used_credits).where(UserCredit.user_id == user_id)
        ).first()
        if row is None:
            return None
        return CreditBalance(user_id=user_id, total=int(row[0]), used=int(row[1]))

    def _ensure(self, user_id: str) -> CreditBalance:
        """Return the balance row, inserting the default allowance if missing."""
        with self._engine.connect() as conn:
            balance = self._read(conn, user_id)
        if balance is not None:
            return balance

        now = datetime.now().isoformat()
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(UserCredit).values(
                    user_id=user_id,
                    total_credits=self.default_allowance,
                    used_credits=0,
                    created_at=now,
                    updated_at=now,
                ))
            _log.info("credit ledger opened: user=%s allowance=%s", user_id, self.default_allowance)
        except IntegrityError:
            # Lost the race against another first-use insert; that row wins.
            _log.debug("credit row for user=%s created concurrently", user_id)

        with self._engine.connect() as conn:
            balance = self._read(conn, user_id)
        if balance is None:
            raise RuntimeError(f"credit row for {user_id!r} missing after insert")
        return balance

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> CreditBalance:
        return self._ensure(user_id)

    def authorize(self, user_id: str, cost: int) -> bool:
        """Advisory pre-check; reserves nothing. A zero cost is always authorized."""
        if cost < 0:
            raise ValueError("cost must be >= 0")
        if cost == 0:
            return True
        return self._ensure(user_id).remaining >= cost

    def deduct(self, user_id: str, cost: int) -> CreditBalance:
        """
        Atomically add `cost` to used_credits.

        Raises InsufficientCreditsError (stage="settlement") when the balance
        at write time cannot cover the cost; nothing is changed in that case.
        """
        if cost < 0:
            raise ValueError("cost must be >= 0")
        self._ensure(user_id)
        if cost == 0:
            return self.get_balance(user_id)

        with self._engine.begin() as conn:
            result = conn.execute(
                update(UserCredit)
                .where(UserCredit.user_id == user_id)
                .where(UserCredit.used_credits + cost <= UserCredit.total_credits)
                .values(
                    used_credits=UserCredit.used_credits + cost,
                    updated_at=datetime.now().isoformat(),
                )
            )
            balance = self._read(conn, user_id)

        if result.rowcount == 0:
            remaining = balance.remaining if balance is not None else 0
            raise InsufficientCreditsError(remaining=remaining, required=cost, stage="settlement")
        return balance

    def grant(self, user_id: str, amount: int) -> CreditBalance:
        """Add `amount` to total_credits. Totals never decrease."""
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self._ensure(user_id)
        with self._engine.begin() as conn:
            conn.execute(
                update(UserCredit)
                .where(UserCredit.user_id == user_id)
                .values(
                    total_credits=UserCredit.total_credits + amount,
                    updated_at=datetime.now().isoformat(),
                )
            )
            balance = self._read(conn, user_id)
        _log.info("credits granted: user=%s amount=%s total=%s", user_id, amount, balance.total)
        return balance

    def list_balances(self) -> List[CreditBalance]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(UserCredit.user_id, UserCredit.total_credits, UserCredit.used_credits)
                .order_by(UserCredit.user_id)
            ).all()
        return [CreditBalance(user_id=r[0], total=int(r[1]), used=int(r[2])) for r in rows]
