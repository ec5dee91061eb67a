"""
Model client for the chat pipeline.

- One call surface: `ModelClient.complete(system_prompt, messages, model_id, metrics_label=None) -> str`
- OpenAI-compatible chat completions over HTTP (OpenRouter by default)
- Transport failures are mapped to `UpstreamError` codes the pipeline can surface
- API key resolution: admin setting `openrouter_key` > OPENROUTER_API_KEY > config
- dry_run mode for local development without a key

Configuration: config/app_config.json sections `llm` and `perf_llm`.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from sqlalchemy.engine import Engine

from src.chat.errors import UpstreamError
from src.observability import metrics
from src.observability.tracing import traced

_log = logging.getLogger(__name__)

# ============================================================
# Constants
# ============================================================

DEFAULT_TIMEOUT = 60  # seconds
RETRYABLE_STATUS = (429, 500, 502, 503)
API_KEY_SETTING = "openrouter_key"

# Metric labels for model ids that are not in the registry.
DEFAULT_MODEL_LABEL = "default"
UNREGISTERED_MODEL_LABEL = "unregistered"


# ============================================================
# Dataclasses
# ============================================================

@dataclass
class ProviderConfig:
    """One OpenAI-compatible endpoint"""
    name: str
    base_url: str
    default_model: str
    api_key: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    extra_headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = 0
    retry_backoff: float = 1.5

    @classmethod
    def from_settings(cls) -> "ProviderConfig":
        from config.settings import settings

        return cls(
            name="openrouter",
            base_url=settings.llm.base_url,
            default_model=settings.llm.default_model,
            api_key=settings.llm.api_key,
            params=dict(settings.llm.params),
            extra_headers={
                "HTTP-Referer": settings.llm.site_url,
                "X-Title": settings.llm.app_name,
            },
            timeout=settings.perf_llm.timeout_seconds,
            max_retries=settings.perf_llm.max_retries,
            retry_backoff=settings.perf_llm.retry_backoff,
        )


# ============================================================
# Helper Functions
# ============================================================

def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def mask_secret(secret: str, show_chars: int = 4) -> str:
    """
    Mask a secret for display, keeping a few characters at both ends.
    e.g. "sk-o...9f2c"
    """
    if not secret:
        return "(empty)"
    if len(secret) <= show_chars * 2 + 3:
        return "*" * len(secret)
    return f"{secret[:show_chars]}...{secret[-show_chars:]}"


def _request_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    timeout: float,
    max_retries: int,
    backoff: float,
    **kwargs: Any,
) -> requests.Response:
    """Retries 429/5xx and connection errors up to `max_retries` times; 0 disables retry."""
    for attempt in range(max_retries + 1):
        try:
            resp = session.request(method, url, timeout=timeout, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout):
            if attempt >= max_retries:
                raise
            time.sleep(backoff ** attempt)
            continue
        if resp.status_code in RETRYABLE_STATUS and attempt < max_retries:
            time.sleep(backoff ** attempt)
            continue
        resp.raise_for_status()
        return resp
    raise RuntimeError("request_with_retry exhausted without a response")


def _upstream_error_for_status(status: int, body: str) -> UpstreamError:
    snippet = (body or "")[:300]
    if status == 429:
        return UpstreamError("rate_limited", f"model backend rate limited the request: {snippet}")
    if status in (401, 403):
        return UpstreamError("auth_failed", "model backend rejected the API key", retryable=False)
    if status in (400, 404, 422):
        return UpstreamError("invalid_request", f"model backend rejected the request: {snippet}", retryable=False)
    return UpstreamError("upstream_unavailable", f"model backend returned HTTP {status}: {snippet}")


# ============================================================
# Response normalization
# ============================================================

def normalize_response(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract the reply from an OpenAI-compatible response.

    final_text:
        - choices[0].message.content (str)
        - if a list, the concatenated type=="text" parts
    """
    result: Dict[str, Any] = {"final_text": None, "usage": raw.get("usage"), "refusal": None}
    choices = raw.get("choices") or []
    if not choices:
        return result

    message = choices[0].get("message") or {}
    if message.get("refusal"):
        result["refusal"] = True

    content = message.get("content")
    if isinstance(content, str):
        result["final_text"] = content
    elif isinstance(content, list):
        parts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        result["final_text"] = "".join(parts) if parts else None
    return result


# ============================================================
# Chat Clients
# ============================================================

class ModelClient(ABC):
    """What the message pipeline needs from a language model backend."""

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        model_id: Optional[str],
        metrics_label: Optional[str] = None,
    ) -> str:
        """
        Args:
            system_prompt: mode-specific instruction, sent as the first message
            messages: full chat history as [{"role": "user"|"assistant", "content": str}], oldest first
            model_id: registry model id; None means the configured default model
            metrics_label: value for the `model` metric label; callers pass a registered
                id or one of the fixed labels so label cardinality stays bounded

        Returns:
            The assistant reply text.

        Raises:
            UpstreamError: backend failed, refused, or returned nothing usable
        """
        raise NotImplementedError


class DryRunModelClient(ModelClient):
    """Answers locally without any network call."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        model_id: Optional[str],
        metrics_label: Optional[str] = None,
    ) -> str:
        model = model_id or self.config.default_model
        last = messages[-1]["content"] if messages else ""
        return f"[DRY_RUN] model={model}, history={len(messages)}, echo={last[:80]}"


class OpenRouterClient(ModelClient):
    """
    OpenAI-compatible /chat/completions client with a pooled requests.Session.
    The API key is resolved per call so an admin key change applies immediately.
    """

    def __init__(self, config: ProviderConfig, key_resolver: Optional[Callable[[], str]] = None):
        self.config = config
        self._key_resolver = key_resolver
        self._session = requests.Session()

    def _api_key(self) -> str:
        if self._key_resolver is not None:
            key = self._key_resolver()
            if key:
                return key
        return self.config.api_key

    def build_payload(self, system_prompt: str, messages: List[Dict[str, str]], model: str) -> Dict[str, Any]:
        payload_messages: List[Dict[str, str]] = []
        if system_prompt:
            payload_messages.append({"role": "system", "content": system_prompt})
        payload_messages.extend({"role": m["role"], "content": m["content"] or ""} for m in messages)
        return deep_merge(self.config.params, {"model": model, "messages": payload_messages})

    @traced("llm.complete")
    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        model_id: Optional[str],
        metrics_label: Optional[str] = None,
    ) -> str:
        model = model_id or self.config.default_model
        api_key = self._api_key()
        if not api_key:
            raise UpstreamError("not_configured", "no API key configured for the model backend", retryable=False)

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            **self.config.extra_headers,
        }
        payload = self.build_payload(system_prompt, messages, model)

        provider = self.config.name
        label = metrics_label or (model if model_id is None else UNREGISTERED_MODEL_LABEL)
        metrics.llm_requests_total.labels(provider=provider, model=label).inc()
        start = time.time()
        try:
            resp = _request_with_retry(
                self._session, "POST", url, self.config.timeout,
                self.config.max_retries, self.config.retry_backoff,
                headers=headers, json=payload,
            )
            raw = resp.json()
        except requests.exceptions.HTTPError as e:
            metrics.llm_errors_total.labels(provider=provider, model=label).inc()
            status = e.response.status_code if e.response is not None else 0
            body = e.response.text if e.response is not None else ""
            _log.warning("[%s] HTTP %s for model=%s", provider, status, model)
            raise _upstream_error_for_status(status, body) from e
        except ValueError as e:
            metrics.llm_errors_total.labels(provider=provider, model=label).inc()
            raise UpstreamError("bad_response", "model backend returned invalid JSON") from e
        except requests.exceptions.Timeout as e:
            metrics.llm_errors_total.labels(provider=provider, model=label).inc()
            raise UpstreamError("timeout", f"model backend timed out after {self.config.timeout}s") from e
        except requests.exceptions.RequestException as e:
            metrics.llm_errors_total.labels(provider=provider, model=label).inc()
            raise UpstreamError("network_error", f"model backend unreachable: {e}") from e
        finally:
            metrics.llm_duration_seconds.labels(provider=provider, model=label).observe(time.time() - start)

        if raw.get("error"):
            metrics.llm_errors_total.labels(provider=provider, model=label).inc()
            err = raw["error"]
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise UpstreamError("upstream_error", f"model backend error: {message}")

        normalized = normalize_response(raw)
        usage = normalized.get("usage") or {}
        if usage.get("prompt_tokens"):
            metrics.llm_tokens_used.labels(provider=provider, model=label, direction="input").inc(usage["prompt_tokens"])
        if usage.get("completion_tokens"):
            metrics.llm_tokens_used.labels(provider=provider, model=label, direction="output").inc(usage["completion_tokens"])

        text = (normalized.get("final_text") or "").strip()
        if not text:
            metrics.llm_errors_total.labels(provider=provider, model=label).inc()
            code = "refused" if normalized.get("refusal") else "empty_response"
            raise UpstreamError(code, "model backend returned no reply text")
        _log.debug("[%s] model=%s latency=%.2fs", provider, model, time.time() - start)
        return text


# ============================================================
# Factory
# ============================================================

def build_model_client(engine: Engine, config: Optional[ProviderConfig] = None) -> ModelClient:
    """Dry-run client when `llm.dry_run` is set, otherwise an OpenRouterClient."""
    from config.settings import settings
    from src.admin.settings_store import AdminSettingsStore

    config = config or ProviderConfig.from_settings()
    if settings.llm.dry_run:
        _log.info("[llm] dry_run enabled, model calls are answered locally")
        return DryRunModelClient(config)

    store = AdminSettingsStore(engine)

    def _key_from_admin_settings() -> str:
        return store.get_value(API_KEY_SETTING) or ""

    client = OpenRouterClient(config, key_resolver=_key_from_admin_settings)
    _log.info("[llm] %s at %s (default model %s, env/config key %s)",
              config.name, config.base_url, config.default_model, mask_secret(config.api_key))
    return client
