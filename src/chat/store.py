"""
Conversation store: chats owned by one user, append-only messages.

History order is the autoincrement message id, i.e. persistence order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from src.chat.errors import ChatNotFoundError, ForbiddenError
from src.chat.prompts import DEFAULT_CHAT_TITLES, normalize_mode
from src.db.models import Chat, Message

ROLES = ("user", "assistant")


def chat_to_dict(row: Chat) -> Dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "title": row.title,
        "mode": row.mode,
        "document_id": row.document_id,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def message_to_dict(row: Message) -> Dict[str, Any]:
    return {
        "id": row.id,
        "chat_id": row.chat_id,
        "role": row.role,
        "content": row.content,
        "model_id": row.model_id,
        "created_at": row.created_at,
    }


class ConversationStore:
    def __init__(self, engine: Engine):
        self._engine = engine

    # ── chats ──

    def create_chat(self, user_id: str, mode: str = "research", title: Optional[str] = None,
                    document_id: Optional[int] = None) -> Dict[str, Any]:
        mode = normalize_mode(mode)
        row = Chat(
            user_id=user_id,
            mode=mode,
            title=(title or "").strip() or DEFAULT_CHAT_TITLES[mode],
            document_id=document_id,
        )
        with Session(self._engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return chat_to_dict(row)

    def get_chats_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Most recently active first."""
        with Session(self._engine) as session:
            rows = session.exec(
                select(Chat).where(Chat.user_id == user_id).order_by(Chat.updated_at.desc(), Chat.id.desc())
            ).all()
            return [chat_to_dict(r) for r in rows]

    def get_chat(self, chat_id: int) -> Optional[Dict[str, Any]]:
        with Session(self._engine) as session:
            row = session.get(Chat, chat_id)
            return chat_to_dict(row) if row is not None else None

    def chat_belongs_to_user(self, chat_id: int, user_id: str) -> bool:
        chat = self.get_chat(chat_id)
        return chat is not None and chat["user_id"] == user_id

    def require_owned_chat(self, chat_id: int, user_id: str) -> Dict[str, Any]:
        """The chat dict, or ChatNotFoundError / ForbiddenError."""
        chat = self.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(f"access denied to chat {chat_id}")
        if chat["user_id"] != user_id:
            raise ForbiddenError(f"access denied to chat {chat_id}")
        return chat

    def update_title(self, chat_id: int, title: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                update(Chat)
                .where(Chat.id == chat_id)
                .values(title=title, updated_at=datetime.now().isoformat())
            )

    def delete_chat(self, chat_id: int, user_id: str) -> bool:
        """Deletes the chat and its messages; False if missing or not owned."""
        with Session(self._engine) as session:
            row = session.get(Chat, chat_id)
            if row is None or row.user_id != user_id:
                return False
            session.delete(row)
            session.commit()
            return True

    # ── messages ──

    def get_messages(self, chat_id: int) -> List[Dict[str, Any]]:
        with Session(self._engine) as session:
            rows = session.exec(
                select(Message).where(Message.chat_id == chat_id).order_by(Message.id)
            ).all()
            return [message_to_dict(r) for r in rows]

    def append_message(self, chat_id: int, role: str, content: str,
                       model_id: Optional[str] = None) -> Dict[str, Any]:
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}")
        row = Message(chat_id=chat_id, role=role, content=content, model_id=model_id)
        with Session(self._engine) as session:
            session.add(row)
            chat = session.get(Chat, chat_id)
            if chat is not None:
                chat.updated_at = row.created_at
                session.add(chat)
            session.commit()
            session.refresh(row)
            return message_to_dict(row)
