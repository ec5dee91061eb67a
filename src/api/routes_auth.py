"""
Auth API: login, logout, current identity; admin user management.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine

from config.settings import settings
from src.api.deps import get_bearer_token, get_current_admin, get_current_identity, get_db_engine, get_ledger
from src.api.schemas import CreateUserRequest, IdentityItem, LoginRequest, LoginResponse, UserItem
from src.auth.session import create_token, revoke_token
from src.auth.users import Identity, UserExistsError, UserStore
from src.credits.ledger import CreditLedger

router = APIRouter(prefix="/auth", tags=["auth"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, engine: Engine = Depends(get_db_engine)) -> LoginResponse:
    identity = UserStore(engine).authenticate(body.user_id, body.password)
    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid user_id or password")
    token = create_token(identity.user_id, expire_hours=settings.auth.token_expire_hours)
    return LoginResponse(token=token, user_id=identity.user_id, is_admin=identity.is_admin)


@router.post("/logout")
def logout(
    token: Optional[str] = Depends(get_bearer_token),
    _identity: Identity = Depends(get_current_identity),
    engine: Engine = Depends(get_db_engine),
) -> dict:
    revoke_token(engine, token)
    return {"logged_out": True}


@router.get("/user", response_model=IdentityItem)
def current_user(identity: Identity = Depends(get_current_identity)) -> IdentityItem:
    return IdentityItem(user_id=identity.user_id, is_admin=identity.is_admin)


@admin_router.post("/users", response_model=UserItem, status_code=201)
def admin_create_user(
    body: CreateUserRequest,
    _admin: Identity = Depends(get_current_admin),
    engine: Engine = Depends(get_db_engine),
    ledger: CreditLedger = Depends(get_ledger),
) -> UserItem:
    try:
        user = UserStore(engine).create_user(body.user_id, body.password, is_admin=body.is_admin)
    except UserExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UserItem(**user, credits=ledger.get_balance(user["user_id"]).to_dict())


@admin_router.get("/users", response_model=list[UserItem])
def admin_list_users(
    _admin: Identity = Depends(get_current_admin),
    engine: Engine = Depends(get_db_engine),
    ledger: CreditLedger = Depends(get_ledger),
) -> list[UserItem]:
    balances = {b.user_id: b.to_dict() for b in ledger.list_balances()}
    return [UserItem(**u, credits=balances.get(u["user_id"])) for u in UserStore(engine).list_users()]
