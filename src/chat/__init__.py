# Chat: conversation store, message pipeline, mode prompts, titles
from src.chat.errors import (
    ChatError,
    ChatNotFoundError,
    ForbiddenError,
    InsufficientCreditsError,
    UpstreamError,
)

__all__ = [
    "ChatError",
    "ChatNotFoundError",
    "ForbiddenError",
    "InsufficientCreditsError",
    "UpstreamError",
]
