"""
API request/response Pydantic models
"""

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from src.chat.pipeline import SendMessageCommand
from src.chat.prompts import normalize_mode


# ── auth / users ──

class LoginRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="Username")
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    user_id: str
    is_admin: bool = False


class IdentityItem(BaseModel):
    user_id: str
    is_admin: bool


class CreateUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=6)
    is_admin: bool = Field(False, description="Grant admin rights")


class UserItem(BaseModel):
    user_id: str
    is_admin: bool
    is_active: bool
    created_at: str
    updated_at: str
    credits: Optional[Dict[str, Any]] = Field(None, description="Balance: total_credits / used_credits / remaining")


# ── chats / messages ──

class CreateChatRequest(BaseModel):
    mode: str = Field("research", description="research | create | edit (legacy alias: riset)")
    title: Optional[str] = Field(None, max_length=200, description="Defaults to a per-mode title")
    document_id: Optional[int] = None

    @field_validator("mode")
    @classmethod
    def _mode(cls, v: str) -> str:
        return normalize_mode(v)


class ChatItem(BaseModel):
    id: int
    user_id: str
    title: str
    mode: str
    document_id: Optional[int] = None
    created_at: str
    updated_at: str


class MessageItem(BaseModel):
    id: int
    chat_id: int
    role: str
    content: str
    model_id: Optional[str] = None
    created_at: str


class SendMessageRequest(BaseModel):
    """Body of POST /chats/{chat_id}/messages. `modelId` is accepted as an alias of `model_id`."""

    content: str = Field(..., min_length=1, max_length=20000, description="User message")
    mode: str = Field("research", description="research | create | edit (legacy alias: riset)")
    model_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("model_id", "modelId"),
        description="Registry model id; omitted means the default model at fallback cost",
    )

    @field_validator("mode")
    @classmethod
    def _mode(cls, v: str) -> str:
        return normalize_mode(v)

    @field_validator("content")
    @classmethod
    def _content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be blank")
        return v

    def to_command(self, chat_id: int, user_id: str) -> SendMessageCommand:
        return SendMessageCommand(
            chat_id=chat_id,
            user_id=user_id,
            content=self.content,
            mode=self.mode,
            model_id=self.model_id,
        )


class SendMessageResponse(BaseModel):
    user_message: MessageItem
    assistant_message: MessageItem
    credits_remaining: int
    cost: int


# ── model registry ──

class ModelItem(BaseModel):
    model_id: str
    display_name: str
    provider: str
    cost_per_message: int
    is_active: bool
    is_free: bool


class CreateModelRequest(BaseModel):
    model_id: str = Field(..., min_length=1, description="Provider model id, e.g. openai/gpt-4o-mini")
    display_name: str = Field(..., min_length=1)
    provider: str = Field("openrouter")
    cost_per_message: int = Field(0, ge=0)
    is_active: bool = True
    is_free: bool = False


class UpdateModelRequest(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1)
    provider: Optional[str] = None
    cost_per_message: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_free: Optional[bool] = None


# ── credits ──

class CreditBalanceItem(BaseModel):
    user_id: str
    total_credits: int
    used_credits: int
    remaining: int


class GrantCreditsRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Credits added to the user's total")


# ── admin settings ──

class AdminSettingRequest(BaseModel):
    key: str = Field(..., min_length=1)
    value: str = ""
    is_encrypted: bool = False


class AdminSettingItem(BaseModel):
    key: str
    value: str
    is_encrypted: bool
    updated_at: str


class AdminStatusResponse(BaseModel):
    database_connected: bool
    api_key_configured: bool
    dry_run: bool


# ── documents ──

class DocumentCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = ""
    doc_type: str = Field("generated", validation_alias=AliasChoices("doc_type", "type"))
    chat_id: Optional[int] = Field(None, validation_alias=AliasChoices("chat_id", "chatId"))
    excerpt: Optional[str] = None


class DocumentUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    content: Optional[str] = None
    doc_type: Optional[str] = Field(None, validation_alias=AliasChoices("doc_type", "type"))
    excerpt: Optional[str] = None


class DocumentItem(BaseModel):
    id: int
    user_id: str
    title: str
    content: str
    excerpt: str
    doc_type: str
    chat_id: Optional[int] = None
    word_count: int
    page_count: int
    reference_count: int
    created_at: str
    updated_at: str
