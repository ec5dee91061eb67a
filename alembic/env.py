"""
Alembic environment for the chat schema.

URL precedence: `alembic -x dburl=...` > sqlalchemy.url in alembic.ini (unless
it is the placeholder) > the application's own resolution
(MITRA_DATABASE_URL, config/app_config*.json). A connection handed in through
`config.attributes["connection"]` is used as-is, for programmatic upgrades.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from sqlmodel import SQLModel

from alembic import context

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import src.db.models  # noqa: F401, E402  (registers the tables on SQLModel.metadata)
from src.db.engine import _make_absolute_sqlite_url, _resolve_db_url, create_db_engine  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata
_PLACEHOLDER_PREFIX = "driver://"


def database_url() -> str:
    url = context.get_x_argument(as_dictionary=True).get("dburl")
    if not url:
        url = config.get_main_option("sqlalchemy.url", default="") or ""
        if url.startswith(_PLACEHOLDER_PREFIX):
            url = ""
    return _make_absolute_sqlite_url(url or _resolve_db_url())


def _configure(**kwargs) -> None:
    # batch mode: SQLite cannot ALTER most column definitions in place
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
        **kwargs,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    _configure(url=database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})


def run_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        _configure(connection=connection)
        return
    engine = create_db_engine(database_url())
    try:
        with engine.connect() as conn:
            _configure(connection=conn)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
