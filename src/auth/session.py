"""JWT-based token generation and verification.

Tokens are HS256-signed JWTs carrying the user id in ``sub``; the admin flag
is not embedded and is always read from the user store, so demoting an admin
takes effect on the next request.

Logout is handled via the ``revoked_tokens`` table, which stores SHA-256
hashes of invalidated tokens. The table is only consulted once the JWT
signature has been verified.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from src.db.models import RevokedToken

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ISSUER = "mitra-chat"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _secret() -> str:
    from config.settings import settings
    return settings.auth.secret_key


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _is_revoked(engine: Engine, token: str) -> bool:
    try:
        with Session(engine) as session:
            return session.get(RevokedToken, _token_hash(token)) is not None
    except SQLAlchemyError:
        # Fail open: an unavailable revocation table must not lock out every user.
        logger.warning("revocation table unavailable during verify_token; treating token as not revoked")
        return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_token(user_id: str, expire_hours: Optional[float] = None) -> str:
    """Sign and return a new JWT for *user_id*.

    Args:
        user_id: Stored in the ``sub`` claim.
        expire_hours: Lifetime in hours; defaults to ``settings.auth.token_expire_hours``.
    """
    from config.settings import settings

    hours = expire_hours if expire_hours is not None else settings.auth.token_expire_hours
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": user_id,
        "iss": ISSUER,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def _decode(token: str, verify_exp: bool = True) -> Optional[dict]:
    """Claims of a token signed by this service, or None."""
    try:
        return jwt.decode(
            token,
            _secret(),
            algorithms=[ALGORITHM],
            issuer=ISSUER,
            options={"require": ["sub", "exp", "iss"], "verify_exp": verify_exp},
        )
    except jwt.InvalidTokenError:
        return None


def verify_token(engine: Engine, token: str) -> Optional[str]:
    """Return the user id if *token* is correctly signed, unexpired and not revoked."""
    if not token:
        return None
    payload = _decode(token)
    if payload is None:
        return None

    user_id: Optional[str] = payload.get("sub")
    if not user_id or _is_revoked(engine, token):
        return None
    return user_id


def revoke_token(engine: Engine, token: str) -> bool:
    """Add *token* to the revocation list. Already-revoked tokens count as success."""
    if not token:
        return False
    # Expired tokens can still be revoked explicitly.
    payload = _decode(token, verify_exp=False)
    if payload is None:
        return False
    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).isoformat()

    h = _token_hash(token)
    with Session(engine) as session:
        if session.get(RevokedToken, h) is None:
            session.add(RevokedToken(
                token_hash=h,
                expires_at=expires_at,
                revoked_at=datetime.now(tz=timezone.utc).isoformat(),
            ))
            session.commit()
    return True


def purge_expired_revocations(engine: Engine) -> int:
    """Delete revocation rows whose JWT has already expired; returns the count."""
    cutoff = datetime.now(tz=timezone.utc).isoformat()
    with engine.begin() as conn:
        result = conn.execute(delete(RevokedToken).where(RevokedToken.expires_at < cutoff))
    return result.rowcount or 0
