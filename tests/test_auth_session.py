"""
Tokens, users and the login/logout round trip.
"""

import jwt
import pytest

from src.api import deps
from src.api.server import app
from src.auth.password import hash_password, verify_password
from src.auth.session import create_token, purge_expired_revocations, revoke_token, verify_token
from src.auth.users import UserExistsError, UserStore


# ── passwords ──

def test_password_hash_roundtrip():
    hashed = hash_password("rahasia123")
    assert hashed != "rahasia123"
    assert verify_password("rahasia123", hashed)
    assert not verify_password("salah", hashed)


def test_short_password_rejected():
    with pytest.raises(ValueError):
        hash_password("abc")


def test_verify_against_garbage_hash_is_false():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


# ── tokens ──

def test_token_roundtrip(engine):
    assert verify_token(engine, create_token("alice")) == "alice"


def test_expired_token_rejected(engine):
    assert verify_token(engine, create_token("alice", expire_hours=-1)) is None


def test_token_signed_with_other_secret_rejected(engine):
    forged = jwt.encode({"sub": "alice"}, "some-other-secret", algorithm="HS256")
    assert verify_token(engine, forged) is None


def test_token_from_another_issuer_rejected(engine):
    from src.auth.session import _secret

    token = jwt.encode(
        {"sub": "alice", "iss": "someone-else", "exp": 4102444800},
        _secret(),
        algorithm="HS256",
    )
    assert verify_token(engine, token) is None
    assert revoke_token(engine, token) is False


def test_revoked_token_rejected(engine):
    token = create_token("alice")
    assert revoke_token(engine, token) is True
    assert revoke_token(engine, token) is True
    assert verify_token(engine, token) is None


def test_purge_drops_only_expired_revocations(engine):
    revoke_token(engine, create_token("alice", expire_hours=-1))
    live = create_token("bob")
    revoke_token(engine, live)
    assert purge_expired_revocations(engine) == 1
    assert verify_token(engine, live) is None


# ── users ──

def test_user_store(engine):
    users = UserStore(engine)
    users.create_user("alice", "rahasia123")
    users.create_user("root", "rahasia123", is_admin=True)

    with pytest.raises(UserExistsError):
        users.create_user("alice", "lainlain")

    assert users.authenticate("alice", "rahasia123").is_admin is False
    assert users.authenticate("root", "rahasia123").is_admin is True
    assert users.authenticate("alice", "wrong-pass") is None
    assert users.authenticate("nobody", "rahasia123") is None

    assert users.set_password("alice", "barubaru")
    assert users.authenticate("alice", "barubaru") is not None
    assert [u["user_id"] for u in users.list_users()] == ["alice", "root"]


# ── HTTP ──

def test_login_logout_roundtrip(api, engine):
    app.dependency_overrides.pop(deps.get_current_identity, None)
    UserStore(engine).create_user("alice", "rahasia123")

    assert api.post("/auth/login", json={"user_id": "alice", "password": "nope!!"}).status_code == 401
    assert api.get("/auth/user").status_code == 401

    token = api.post("/auth/login", json={"user_id": "alice", "password": "rahasia123"}).json()["token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert api.get("/auth/user", headers=headers).json() == {"user_id": "alice", "is_admin": False}

    assert api.post("/auth/logout", headers=headers).json() == {"logged_out": True}
    assert api.get("/auth/user", headers=headers).status_code == 401


def test_admin_creates_user_with_default_balance(api):
    api.login_as("root", is_admin=True)
    resp = api.post("/admin/users", json={"user_id": "dewi", "password": "rahasia123"})
    assert resp.status_code == 201
    assert resp.json()["credits"]["remaining"] == 100
    assert api.post("/admin/users", json={"user_id": "dewi", "password": "rahasia123"}).status_code == 409

    api.login_as("dewi")
    assert api.get("/admin/users").status_code == 403
