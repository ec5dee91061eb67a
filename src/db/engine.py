"""
Centralized SQLAlchemy/SQLModel engine factory.

The process-wide engine is only used by the API dependency layer
(`src.api.deps.get_db_engine`); stores and the ledger take an engine in
their constructor so tests can hand them a throwaway database.
The database URL is resolved from config/app_config.json or the
MITRA_DATABASE_URL environment variable.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

_engine: Engine | None = None

_ROOT = Path(__file__).resolve().parents[2]
_CONFIG_FILES = ("app_config.local.json", "app_config.json")
_DEFAULT_URL = "sqlite:///data/mitra.db"
_SQLITE_PREFIX = "sqlite:///"

# Applied to every new SQLite connection, in order.
_SQLITE_PRAGMAS = (
    "journal_mode=WAL",
    "synchronous=NORMAL",
    "foreign_keys=ON",
    "busy_timeout=30000",
)


def _url_from_config(path: Path) -> str | None:
    """database.url from one JSON config file; unreadable files count as absent."""
    try:
        cfg = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return (cfg.get("database") or {}).get("url")


def _resolve_db_url() -> str:
    """
    Resolve database URL with precedence:
    1. MITRA_DATABASE_URL environment variable
    2. config/app_config.local.json  database.url
    3. config/app_config.json        database.url
    4. Fallback: sqlite:///data/mitra.db
    """
    candidates = [os.environ.get("MITRA_DATABASE_URL")]
    candidates += [_url_from_config(_ROOT / "config" / name) for name in _CONFIG_FILES]
    return next((url for url in candidates if url), _DEFAULT_URL)


def _make_absolute_sqlite_url(url: str) -> str:
    """
    Resolve relative sqlite:/// paths to absolute so the DB is always
    created under <project_root>/ regardless of cwd.
    """
    if not url.startswith(_SQLITE_PREFIX):
        return url
    db_path = Path(url[len(_SQLITE_PREFIX):])
    if db_path.is_absolute() or str(db_path) == ":memory:":
        return url
    abs_path = (_ROOT / db_path).resolve()
    abs_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{abs_path}"


def create_db_engine(db_url: str) -> Engine:
    """Build an engine for `db_url`; SQLite connections get WAL + busy timeout."""
    is_sqlite = db_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}

    engine = create_engine(
        db_url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, _connection_record):
            cursor = dbapi_conn.cursor()
            try:
                for pragma in _SQLITE_PRAGMAS:
                    cursor.execute(f"PRAGMA {pragma}")
            finally:
                cursor.close()

    return engine


def get_engine() -> Engine:
    """Return the singleton SQLAlchemy engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(_make_absolute_sqlite_url(_resolve_db_url()))
    return _engine


def init_db(engine: Engine | None = None) -> None:
    """
    Create all tables that are not yet present.
    Deployed databases are migrated by Alembic; this covers tests and
    fresh installs.
    """
    from src.db import models as _models  # noqa: F401  (registers tables)
    SQLModel.metadata.create_all(engine or get_engine())
