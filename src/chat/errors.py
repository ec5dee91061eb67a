"""
Errors raised by the message pipeline and its collaborators.

All of them are recovered at the HTTP boundary (src.api.server) and turned
into structured responses: 403 / 402 / 500.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base class for pipeline errors."""

    status_code = 500

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "detail": str(self)}


class ForbiddenError(ChatError):
    """The chat does not belong to the caller."""

    status_code = 403


class ChatNotFoundError(ForbiddenError):
    """Chat id does not exist. Reported exactly like ForbiddenError."""

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "ForbiddenError", "detail": str(self)}


class InsufficientCreditsError(ChatError):
    """
    Balance too low for the message cost.

    stage="advisory": raised before anything was persisted or generated.
    stage="settlement": the reply was generated and stored but could not be
    charged; `assistant_message` carries the stored reply.
    """

    status_code = 402

    def __init__(
        self,
        remaining: int,
        required: int,
        stage: str = "advisory",
        assistant_message: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"insufficient credits: {remaining} remaining, {required} required")
        self.remaining = remaining
        self.required = required
        self.stage = stage
        self.assistant_message = assistant_message

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": "InsufficientCreditsError",
            "detail": str(self),
            "credits_remaining": self.remaining,
            "required": self.required,
            "stage": self.stage,
        }
        if self.assistant_message is not None:
            body["assistant_message"] = self.assistant_message
        return body


class UpstreamError(ChatError):
    """The model backend failed or timed out. The caller may retry."""

    status_code = 500

    def __init__(self, code: str, message: str, retryable: bool = True):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "UpstreamError",
            "code": self.code,
            "detail": self.message,
            "retryable": self.retryable,
        }
