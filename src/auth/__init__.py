# Auth: password hashing, JWT sessions, user accounts
from src.auth.password import hash_password, verify_password
from src.auth.session import (
    create_token,
    verify_token,
    revoke_token,
    purge_expired_revocations,
)
from src.auth.users import Identity, UserExistsError, UserStore

__all__ = [
    "hash_password",
    "verify_password",
    "create_token",
    "verify_token",
    "revoke_token",
    "purge_expired_revocations",
    "Identity",
    "UserExistsError",
    "UserStore",
]
