"""
Chat API: list/create/delete chats, read history, send a credit-metered message.

Pipeline errors (ForbiddenError / InsufficientCreditsError / UpstreamError)
propagate to the handlers registered in src.api.server.
"""

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_conversation_store, get_current_identity, get_pipeline
from src.api.schemas import ChatItem, CreateChatRequest, MessageItem, SendMessageRequest, SendMessageResponse
from src.auth.users import Identity
from src.chat.pipeline import MessagePipeline
from src.chat.store import ConversationStore

router = APIRouter(prefix="/chats", tags=["chats"])


@router.get("", response_model=list[ChatItem])
def list_chats(
    identity: Identity = Depends(get_current_identity),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[dict]:
    return store.get_chats_for_user(identity.user_id)


@router.post("", response_model=ChatItem, status_code=201)
def create_chat(
    body: CreateChatRequest,
    identity: Identity = Depends(get_current_identity),
    store: ConversationStore = Depends(get_conversation_store),
) -> dict:
    return store.create_chat(identity.user_id, mode=body.mode, title=body.title, document_id=body.document_id)


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: int,
    identity: Identity = Depends(get_current_identity),
    store: ConversationStore = Depends(get_conversation_store),
) -> dict:
    if not store.delete_chat(chat_id, identity.user_id):
        raise HTTPException(status_code=403, detail="Access denied to this chat")
    return {"chat_id": chat_id, "deleted": True}


@router.get("/{chat_id}/messages", response_model=list[MessageItem])
def list_messages(
    chat_id: int,
    identity: Identity = Depends(get_current_identity),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[dict]:
    store.require_owned_chat(chat_id, identity.user_id)
    return store.get_messages(chat_id)


@router.post("/{chat_id}/messages", response_model=SendMessageResponse)
def send_message(
    chat_id: int,
    body: SendMessageRequest,
    identity: Identity = Depends(get_current_identity),
    pipeline: MessagePipeline = Depends(get_pipeline),
) -> dict:
    result = pipeline.send(body.to_command(chat_id, identity.user_id))
    return result.to_dict()
