"""
Credits API: the caller's balance; admin listing and grants.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine

from src.api.deps import get_current_admin, get_current_identity, get_db_engine, get_ledger
from src.api.schemas import CreditBalanceItem, GrantCreditsRequest
from src.auth.users import Identity, UserStore
from src.credits.ledger import CreditLedger
from src.log import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["credits"])


@router.get("/credits", response_model=CreditBalanceItem)
def my_credits(
    identity: Identity = Depends(get_current_identity),
    ledger: CreditLedger = Depends(get_ledger),
) -> dict:
    return ledger.get_balance(identity.user_id).to_dict()


@router.get("/admin/credits", response_model=list[CreditBalanceItem])
def all_credits(
    _admin: Identity = Depends(get_current_admin),
    ledger: CreditLedger = Depends(get_ledger),
) -> list[dict]:
    return [b.to_dict() for b in ledger.list_balances()]


@router.post("/admin/users/{user_id}/credits", response_model=CreditBalanceItem)
def grant_credits(
    user_id: str,
    body: GrantCreditsRequest,
    admin: Identity = Depends(get_current_admin),
    ledger: CreditLedger = Depends(get_ledger),
    engine: Engine = Depends(get_db_engine),
) -> dict:
    # Grants only go to existing, active accounts.
    if UserStore(engine).get_identity(user_id) is None:
        raise HTTPException(status_code=404, detail=f"user not found: {user_id}")
    try:
        balance = ledger.grant(user_id, body.amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("[credits] %s granted %d to %s", admin.user_id, body.amount, user_id)
    return balance.to_dict()
