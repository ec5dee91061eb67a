"""bcrypt password hashing."""

import bcrypt

MIN_PASSWORD_LENGTH = 6


def hash_password(plain: str) -> str:
    if not plain or not plain.strip():
        raise ValueError("password cannot be empty")
    if len(plain) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """False for empty input or a malformed stored hash instead of raising."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
