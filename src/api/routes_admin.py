"""
Admin API: key/value settings and system status.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.admin.settings_store import AdminSettingsStore
from src.api.deps import get_current_admin, get_db_engine
from src.api.schemas import AdminSettingItem, AdminSettingRequest, AdminStatusResponse
from src.auth.users import Identity
from src.llm.llm_manager import API_KEY_SETTING
from src.log import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/settings", response_model=list[AdminSettingItem])
def list_settings(
    _admin: Identity = Depends(get_current_admin),
    engine: Engine = Depends(get_db_engine),
) -> list[dict]:
    return AdminSettingsStore(engine).list_public()


@router.post("/settings", response_model=AdminSettingItem)
def upsert_setting(
    body: AdminSettingRequest,
    admin: Identity = Depends(get_current_admin),
    engine: Engine = Depends(get_db_engine),
) -> dict:
    try:
        item = AdminSettingsStore(engine).set_value(body.key, body.value, is_encrypted=body.is_encrypted)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("[admin] %s updated setting %s", admin.user_id, body.key)
    return item


@router.get("/status", response_model=AdminStatusResponse)
def system_status(
    _admin: Identity = Depends(get_current_admin),
    engine: Engine = Depends(get_db_engine),
) -> AdminStatusResponse:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("[admin] database check failed: %s", e)
        db_ok = False
    key = AdminSettingsStore(engine).get_value(API_KEY_SETTING) if db_ok else None
    return AdminStatusResponse(
        database_connected=db_ok,
        api_key_configured=bool(key or settings.llm.api_key),
        dry_run=settings.llm.dry_run,
    )
