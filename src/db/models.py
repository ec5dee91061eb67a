"""
SQLModel table definitions: single source of truth for every table the
chat service persists.

Design rules for SQLModel compatibility:
  - primary_key=True and foreign_key="..." must be set in Field() only,
    never combined with sa_column (SQLModel raises RuntimeError otherwise).
  - Boolean flags are INTEGER 0/1 so SQLite and PostgreSQL behave alike.
  - user ids are opaque strings handed over by the identity layer; they are
    deliberately not foreign keys so chats/credits survive user-store swaps.
  - messages.model_id is a plain string: a dangling model reference is tolerated.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, Index, Integer, Text
from sqlmodel import Field, Relationship, SQLModel


def _now_iso() -> str:
    return datetime.now().isoformat()


# ──────────────────────────────────────────────────────────────────────────────
# 1. Users
# ──────────────────────────────────────────────────────────────────────────────

class User(SQLModel, table=True):
    __tablename__ = "users"

    user_id: str = Field(primary_key=True)
    password_hash: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    is_admin: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    is_active: int = Field(default=1, sa_column=Column(Integer, nullable=False, server_default="1"))
    created_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))
    updated_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))


# ──────────────────────────────────────────────────────────────────────────────
# 2. Chats + messages
# ──────────────────────────────────────────────────────────────────────────────

class Chat(SQLModel, table=True):
    __tablename__ = "chats"
    __table_args__ = (
        Index("idx_chats_user_updated", "user_id", "updated_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(sa_column=Column(Text, nullable=False))
    title: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    mode: str = Field(default="research", sa_column=Column(Text, nullable=False, server_default="research"))
    document_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))
    updated_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))

    messages: List["Message"] = Relationship(
        back_populates="chat",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Message(SQLModel, table=True):
    """One chat turn. Rows are only ever appended; `id` order is history order."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_chat_id_id", "chat_id", "id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    chat_id: int = Field(foreign_key="chats.id")
    role: str = Field(sa_column=Column(Text, nullable=False))
    content: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    model_id: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))

    chat: Optional[Chat] = Relationship(back_populates="messages")


# ──────────────────────────────────────────────────────────────────────────────
# 3. Model registry
# ──────────────────────────────────────────────────────────────────────────────

class LLMModel(SQLModel, table=True):
    __tablename__ = "llm_models"

    id: Optional[int] = Field(default=None, primary_key=True)
    model_id: str = Field(sa_column=Column(Text, nullable=False, unique=True))
    display_name: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    provider: str = Field(default="openrouter", sa_column=Column(Text, nullable=False, server_default="openrouter"))
    cost_per_message: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    is_active: int = Field(default=1, sa_column=Column(Integer, nullable=False, server_default="1"))
    is_free: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    created_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))
    updated_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))


# ──────────────────────────────────────────────────────────────────────────────
# 4. Credits
# ──────────────────────────────────────────────────────────────────────────────

class UserCredit(SQLModel, table=True):
    """Per-user ledger row. remaining = total_credits - used_credits."""

    __tablename__ = "user_credits"

    user_id: str = Field(primary_key=True)
    total_credits: int = Field(default=100, sa_column=Column(Integer, nullable=False, server_default="100"))
    used_credits: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    created_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))
    updated_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))


# ──────────────────────────────────────────────────────────────────────────────
# 5. Documents
# ──────────────────────────────────────────────────────────────────────────────

class Document(SQLModel, table=True):
    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_user_updated", "user_id", "updated_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(sa_column=Column(Text, nullable=False))
    title: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    content: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    excerpt: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    doc_type: str = Field(default="generated", sa_column=Column(Text, nullable=False, server_default="generated"))
    chat_id: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    word_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    page_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    reference_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    created_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))
    updated_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))


# ──────────────────────────────────────────────────────────────────────────────
# 6. Admin settings
# ──────────────────────────────────────────────────────────────────────────────

class AdminSetting(SQLModel, table=True):
    __tablename__ = "admin_settings"

    key: str = Field(primary_key=True)
    value: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    is_encrypted: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    updated_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))


# ──────────────────────────────────────────────────────────────────────────────
# 7. Auth  (JWT token revocation list)
# ──────────────────────────────────────────────────────────────────────────────

class RevokedToken(SQLModel, table=True):
    """Stores SHA-256 hashes of explicitly revoked JWT tokens.

    Only invalidated tokens are stored here; normal validation is a single
    primary-key lookup. Rows whose `expires_at` is in the past can be purged.
    """

    __tablename__ = "revoked_tokens"
    __table_args__ = (
        Index("idx_revoked_tokens_expires_at", "expires_at"),
    )

    token_hash: str = Field(sa_column=Column(Text, primary_key=True, nullable=False))
    # ISO-8601 timestamp copied from the JWT `exp` claim; used for cleanup.
    expires_at: str = Field(sa_column=Column(Text, nullable=False))
    revoked_at: str = Field(default_factory=_now_iso, sa_column=Column(Text, nullable=False))
