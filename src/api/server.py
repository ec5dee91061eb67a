"""
FastAPI application entry point - credit-metered chat API
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.api.deps import get_db_engine
from src.api.routes_admin import router as admin_settings_router
from src.api.routes_auth import admin_router as admin_users_router, router as auth_router
from src.api.routes_chat import router as chat_router
from src.api.routes_credits import router as credits_router
from src.api.routes_documents import router as documents_router
from src.api.routes_models import router as models_router
from src.chat.errors import ChatError, InsufficientCreditsError, UpstreamError
from src.log import get_logger
from src.observability import setup_observability

logger = get_logger(__name__)

_DEFAULT_SECRET = "change-me-in-local"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create missing tables → secret check → purge expired revocations"""
    from src.auth.session import purge_expired_revocations
    from src.db.engine import get_engine, init_db

    try:
        init_db()
    except SQLAlchemyError as e:
        logger.warning("[startup] init_db failed (may be OK if alembic already ran): %s", e)

    if settings.auth.secret_key == _DEFAULT_SECRET:
        logger.warning(
            "[startup] SECURITY WARNING: auth.secret_key is still the default value '%s'. "
            "Set a strong random value in config/app_config.local.json → auth.secret_key "
            "or MITRA_SECRET_KEY before deploying.",
            _DEFAULT_SECRET,
        )

    try:
        purged = purge_expired_revocations(get_engine())
        if purged:
            logger.info("[startup] purged %d expired token revocation record(s)", purged)
    except SQLAlchemyError as e:
        logger.warning("[startup] purge_expired_revocations failed: %s", e)

    yield


app = FastAPI(
    title="Mitra AI Chat API",
    description="Credit-metered chat with research / create / edit modes",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    if isinstance(exc, (InsufficientCreditsError, UpstreamError)):
        logger.info("[api] %s %s -> %d %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[api] unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "InternalError", "detail": "internal server error"})


app.include_router(auth_router)
app.include_router(admin_users_router)
app.include_router(admin_settings_router)
app.include_router(chat_router)
app.include_router(models_router)
app.include_router(credits_router)
app.include_router(documents_router)

# Observability: middleware + /metrics
setup_observability(app)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/health/detailed", tags=["observability"])
def health_detailed(engine: Engine = Depends(get_db_engine)) -> dict:
    """Component status: database reachability and model backend configuration."""
    checks: dict = {}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        checks["database"] = f"error: {e}"

    if settings.llm.dry_run:
        checks["llm"] = "dry_run"
    else:
        from src.admin.settings_store import AdminSettingsStore
        from src.llm.llm_manager import API_KEY_SETTING

        has_key = bool(settings.llm.api_key)
        if not has_key and checks["database"] == "ok":
            has_key = bool(AdminSettingsStore(engine).get_value(API_KEY_SETTING))
        checks["llm"] = "ok" if has_key else "not_configured"

    overall = "ok" if checks["database"] == "ok" and checks["llm"] in ("ok", "dry_run") else "degraded"
    return {"status": overall, "components": checks}
