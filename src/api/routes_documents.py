"""
Documents API: owner-scoped CRUD plus plain-text download.
A document owned by someone else answers 404, same as a missing one.
"""

import re
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.engine import Engine

from src.api.deps import get_current_identity, get_db_engine
from src.api.schemas import DocumentCreateRequest, DocumentItem, DocumentUpdateRequest
from src.auth.users import Identity
from src.documents.store import DocumentStore

router = APIRouter(prefix="/documents", tags=["documents"])

_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\r\n]+')


def _store(engine: Engine = Depends(get_db_engine)) -> DocumentStore:
    return DocumentStore(engine)


@router.get("", response_model=list[DocumentItem])
def list_documents(
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(_store),
) -> list[dict]:
    return store.list_for_user(identity.user_id)


@router.post("", response_model=DocumentItem, status_code=201)
def create_document(
    body: DocumentCreateRequest,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(_store),
) -> dict:
    try:
        return store.create(
            identity.user_id,
            title=body.title,
            content=body.content,
            doc_type=body.doc_type,
            chat_id=body.chat_id,
            excerpt=body.excerpt,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{document_id}", response_model=DocumentItem)
def get_document(
    document_id: int,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(_store),
) -> dict:
    doc = store.get(identity.user_id, document_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


@router.put("/{document_id}", response_model=DocumentItem)
def update_document(
    document_id: int,
    body: DocumentUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(_store),
) -> dict:
    try:
        doc = store.update(identity.user_id, document_id, **body.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


@router.delete("/{document_id}")
def delete_document(
    document_id: int,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(_store),
) -> dict:
    if not store.delete(identity.user_id, document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"document_id": document_id, "deleted": True}


@router.get("/{document_id}/download")
def download_document(
    document_id: int,
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(_store),
) -> Response:
    doc = store.get(identity.user_id, document_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    filename = (_UNSAFE_FILENAME.sub("_", doc["title"]).strip() or "document") + ".txt"
    return Response(
        content=doc["content"].encode("utf-8"),
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
