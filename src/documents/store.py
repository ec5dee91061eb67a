"""
Per-user document storage.

Every read and write is scoped to the owner: a document id that belongs to
somebody else behaves exactly like a missing one (None / False).
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from src.db.models import Document

DOC_TYPES = ("uploaded", "generated", "academic")
EXCERPT_CHARS = 200
_WORD_RE = re.compile(r"\S+")
_REF_LINE_RE = re.compile(r"^\s*(\[\d+\]|\d+\.\s+\S.*\(\d{4}\))", re.MULTILINE)


def count_words(text: str) -> int:
    return len(_WORD_RE.findall(text or ""))


def make_excerpt(text: str, limit: int = EXCERPT_CHARS) -> str:
    flat = " ".join((text or "").split())
    return flat if len(flat) <= limit else flat[:limit].rstrip() + "..."


def _apply_content(row: Document, content: str) -> None:
    row.content = content or ""
    row.word_count = count_words(row.content)
    # ~250 words per page for a double-spaced academic page
    row.page_count = max(1, -(-row.word_count // 250)) if row.word_count else 0
    row.reference_count = len(_REF_LINE_RE.findall(row.content))


class DocumentStore:
    def __init__(self, engine: Engine):
        self._engine = engine

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        with Session(self._engine) as session:
            rows = session.exec(
                select(Document)
                .where(Document.user_id == user_id)
                .order_by(Document.updated_at.desc(), Document.id.desc())
            ).all()
            return [to_dict(r) for r in rows]

    def create(
        self,
        user_id: str,
        title: str,
        content: str = "",
        doc_type: str = "generated",
        chat_id: Optional[int] = None,
        excerpt: Optional[str] = None,
    ) -> Dict[str, Any]:
        if doc_type not in DOC_TYPES:
            raise ValueError(f"doc_type must be one of {DOC_TYPES}")
        row = Document(user_id=user_id, title=title.strip() or "Untitled", doc_type=doc_type, chat_id=chat_id)
        _apply_content(row, content)
        row.excerpt = excerpt if excerpt is not None else make_excerpt(row.content)
        with Session(self._engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return to_dict(row)

    def get(self, user_id: str, document_id: int) -> Optional[Dict[str, Any]]:
        with Session(self._engine) as session:
            row = session.get(Document, document_id)
            if row is None or row.user_id != user_id:
                return None
            return to_dict(row)

    def update(self, user_id: str, document_id: int, **fields: Any) -> Optional[Dict[str, Any]]:
        with Session(self._engine) as session:
            row = session.get(Document, document_id)
            if row is None or row.user_id != user_id:
                return None
            if fields.get("title") is not None:
                row.title = fields["title"].strip() or row.title
            if fields.get("doc_type") is not None:
                if fields["doc_type"] not in DOC_TYPES:
                    raise ValueError(f"doc_type must be one of {DOC_TYPES}")
                row.doc_type = fields["doc_type"]
            if fields.get("content") is not None:
                _apply_content(row, fields["content"])
                if fields.get("excerpt") is None:
                    row.excerpt = make_excerpt(row.content)
            if fields.get("excerpt") is not None:
                row.excerpt = fields["excerpt"]
            row.updated_at = datetime.now().isoformat()
            session.add(row)
            session.commit()
            session.refresh(row)
            return to_dict(row)

    def delete(self, user_id: str, document_id: int) -> bool:
        with Session(self._engine) as session:
            row = session.get(Document, document_id)
            if row is None or row.user_id != user_id:
                return False
            session.delete(row)
            session.commit()
            return True


def to_dict(row: Document) -> Dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "title": row.title,
        "content": row.content,
        "excerpt": row.excerpt,
        "doc_type": row.doc_type,
        "chat_id": row.chat_id,
        "word_count": row.word_count,
        "page_count": row.page_count,
        "reference_count": row.reference_count,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }
