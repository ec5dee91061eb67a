"""
src/db: centralized database engine factory and SQLModel models.

Usage:
    from src.db import get_engine, create_db_engine, init_db
    from src.db.models import Chat, Message, UserCredit, ...
"""

from src.db.engine import create_db_engine, get_engine, init_db

__all__ = ["create_db_engine", "get_engine", "init_db"]
