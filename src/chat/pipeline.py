"""
Credit-metered message pipeline.

One `send()` call walks these steps in order:

    1. ownership check      chat must belong to the caller        -> ForbiddenError
    2. advisory check       remaining >= resolve_cost(model_id)   -> InsufficientCreditsError (stage=advisory)
    3. persist user msg     kept even if later steps fail
    4. model call           full history + mode system prompt,    -> UpstreamError
                            bounded by `timeout_seconds`
    5. persist reply        role=assistant, tagged with model_id
    6. settlement           atomic ledger.deduct                  -> InsufficientCreditsError (stage=settlement)
    7. report               both messages + remaining credits

Nothing already committed is rolled back. A failure at step 4 leaves the
user message without a reply and charges nothing; a failure at step 6
leaves a stored, uncharged reply, which is returned inside the error.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src.chat.errors import InsufficientCreditsError, UpstreamError
from src.chat.prompts import normalize_mode, system_prompt
from src.chat.store import ConversationStore
from src.chat.titles import generate_chat_title
from src.credits.ledger import CreditLedger
from src.llm.llm_manager import DEFAULT_MODEL_LABEL, UNREGISTERED_MODEL_LABEL, ModelClient
from src.llm.model_registry import ModelRegistry
from src.log import log_context
from src.observability import metrics, tracer
from src.utils.limiter import CallTimeout, call_with_timeout

_log = logging.getLogger(__name__)

# Title is derived once, while the chat holds only the first exchange.
TITLE_HISTORY_LIMIT = 2


@dataclass(frozen=True)
class SendMessageCommand:
    """A validated inbound message; built by the API layer from the request body."""
    chat_id: int
    user_id: str
    content: str
    mode: str = "research"
    model_id: Optional[str] = None

    def __post_init__(self):
        if not self.content or not self.content.strip():
            raise ValueError("content must not be empty")
        object.__setattr__(self, "mode", normalize_mode(self.mode))
        if self.model_id is not None and not self.model_id.strip():
            object.__setattr__(self, "model_id", None)


@dataclass(frozen=True)
class SendMessageResult:
    user_message: Dict[str, Any]
    assistant_message: Dict[str, Any]
    credits_remaining: int
    cost: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_message": self.user_message,
            "assistant_message": self.assistant_message,
            "credits_remaining": self.credits_remaining,
            "cost": self.cost,
        }


class MessagePipeline:
    def __init__(
        self,
        ledger: CreditLedger,
        store: ConversationStore,
        registry: ModelRegistry,
        model_client: ModelClient,
        timeout_seconds: Optional[float] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        if timeout_seconds is None:
            from config.settings import settings
            timeout_seconds = settings.perf_llm.timeout_seconds
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.ledger = ledger
        self.store = store
        self.registry = registry
        self.model_client = model_client
        self.timeout_seconds = float(timeout_seconds)
        self._executor = executor

    def send(self, cmd: SendMessageCommand) -> SendMessageResult:
        with tracer.start_as_current_span("chat.send_message") as span, \
                log_context(user=cmd.user_id, chat=cmd.chat_id, model=cmd.model_id):
            span.set_attribute("chat.id", cmd.chat_id)
            span.set_attribute("chat.mode", cmd.mode)
            span.set_attribute("llm.model", cmd.model_id or "")
            try:
                return self._send(cmd)
            except Exception as e:
                span.set_attribute("error.type", type(e).__name__)
                raise

    def _send(self, cmd: SendMessageCommand) -> SendMessageResult:
        # 1. ownership
        try:
            self.store.require_owned_chat(cmd.chat_id, cmd.user_id)
        except Exception:
            metrics.messages_total.labels(mode=cmd.mode, outcome="forbidden").inc()
            raise

        # 2. advisory check
        cost = self.registry.resolve_cost(cmd.model_id)
        label = self.metric_label(cmd.model_id)
        if not self.ledger.authorize(cmd.user_id, cost):
            remaining = self.ledger.get_balance(cmd.user_id).remaining
            metrics.credit_denials_total.labels(stage="advisory").inc()
            metrics.messages_total.labels(mode=cmd.mode, outcome="insufficient").inc()
            _log.warning("advisory denial: user=%s chat=%s cost=%s remaining=%s",
                         cmd.user_id, cmd.chat_id, cost, remaining)
            raise InsufficientCreditsError(remaining=remaining, required=cost, stage="advisory")

        # 3. persist the user's message
        user_message = self.store.append_message(cmd.chat_id, "user", cmd.content, cmd.model_id)

        # 4. history + model call
        history = self.store.get_messages(cmd.chat_id)
        reply = self._call_model(cmd, history, label)

        # 5. persist the reply
        assistant_message = self.store.append_message(cmd.chat_id, "assistant", reply, cmd.model_id)

        if len(history) <= TITLE_HISTORY_LIMIT:
            self._update_title(cmd)

        # 6. settlement
        try:
            balance = self.ledger.deduct(cmd.user_id, cost)
        except InsufficientCreditsError as e:
            metrics.credit_denials_total.labels(stage="settlement").inc()
            metrics.messages_total.labels(mode=cmd.mode, outcome="overdraw").inc()
            _log.warning("settlement failed after reply was stored: user=%s chat=%s cost=%s remaining=%s",
                         cmd.user_id, cmd.chat_id, cost, e.remaining)
            raise InsufficientCreditsError(
                remaining=e.remaining,
                required=cost,
                stage="settlement",
                assistant_message=assistant_message,
            ) from e

        # 7. report
        metrics.credits_deducted_total.labels(model=label).inc(cost)
        metrics.messages_total.labels(mode=cmd.mode, outcome="ok").inc()
        _log.info("message settled: user=%s chat=%s model=%s cost=%s remaining=%s",
                  cmd.user_id, cmd.chat_id, cmd.model_id, cost, balance.remaining)
        return SendMessageResult(
            user_message=user_message,
            assistant_message=assistant_message,
            credits_remaining=balance.remaining,
            cost=cost,
        )

    def metric_label(self, model_id: Optional[str]) -> str:
        """Metric label for `model_id`: registered ids only, so label cardinality stays bounded."""
        if not model_id:
            return DEFAULT_MODEL_LABEL
        return model_id if self.registry.get(model_id) is not None else UNREGISTERED_MODEL_LABEL

    def _call_model(self, cmd: SendMessageCommand, history: List[Dict[str, Any]], label: str) -> str:
        turns = [{"role": m["role"], "content": m["content"]} for m in history]
        try:
            reply = call_with_timeout(
                self.model_client.complete,
                system_prompt(cmd.mode),
                turns,
                cmd.model_id,
                timeout=self.timeout_seconds,
                executor=self._executor,
                metrics_label=label,
            )
        except CallTimeout as e:
            metrics.messages_total.labels(mode=cmd.mode, outcome="timeout").inc()
            _log.error("model call timed out: chat=%s model=%s after %.1fs", cmd.chat_id, cmd.model_id, e.timeout)
            raise UpstreamError("timeout", f"model did not respond within {e.timeout:g}s", retryable=True) from e
        except UpstreamError as e:
            metrics.messages_total.labels(mode=cmd.mode, outcome="upstream_error").inc()
            _log.error("model call failed: chat=%s model=%s code=%s: %s", cmd.chat_id, cmd.model_id, e.code, e.message)
            raise
        except Exception as e:
            metrics.messages_total.labels(mode=cmd.mode, outcome="upstream_error").inc()
            _log.exception("model client raised unexpectedly: chat=%s model=%s", cmd.chat_id, cmd.model_id)
            raise UpstreamError("model_error", f"model call failed: {e}", retryable=True) from e

        if not isinstance(reply, str) or not reply.strip():
            metrics.messages_total.labels(mode=cmd.mode, outcome="upstream_error").inc()
            raise UpstreamError("empty_response", "model returned an empty reply", retryable=True)
        return reply

    def _update_title(self, cmd: SendMessageCommand) -> None:
        try:
            self.store.update_title(cmd.chat_id, generate_chat_title(cmd.content, cmd.mode))
        except Exception:
            _log.warning("chat title update failed: chat=%s", cmd.chat_id, exc_info=True)
