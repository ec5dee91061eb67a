"""
Unified configuration module
- Config file: config/app_config.json (tunable parameters)
- Local override: config/app_config.local.json (private, not committed)
- Environment variables override secrets (API keys, JWT secret)
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any
from dotenv import load_dotenv

load_dotenv()

# Load config/app_config.json + config/app_config.local.json (local override)
_CONFIG_PATH = Path(__file__).parent / "app_config.json"
_LOCAL_CONFIG_PATH = Path(__file__).parent / "app_config.local.json"


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


_RAW_CONFIG: Dict[str, Any] = _load_json(_CONFIG_PATH)
if _LOCAL_CONFIG_PATH.exists():
    _RAW_CONFIG = _deep_merge(_RAW_CONFIG, _load_json(_LOCAL_CONFIG_PATH))


def _section(name: str) -> Dict[str, Any]:
    return (_RAW_CONFIG.get(name) or {})


@dataclass
class ApiSettings:
    """API server"""
    host: str = os.getenv("API_HOST", "127.0.0.1")
    port: int = int(os.getenv("API_PORT", "8000"))


@dataclass
class AuthSettings:
    """Auth: token lifetime and the bootstrap admin account (secrets go in .local.json)"""
    secret_key: str = "change-me-in-local"
    token_expire_hours: float = 24.0
    admin_username: str = "admin"
    admin_default_password: str = "admin123"


@dataclass
class CreditSettings:
    """Credit metering"""
    default_allowance: int = 100  # opening balance for a user without a ledger row
    fallback_cost: int = 1        # cost charged when the model id is unknown or missing


@dataclass
class RegistrySettings:
    """Model registry read cache"""
    cache_ttl_seconds: float = 5.0


@dataclass
class LLMSettings:
    """
    Model backend: OpenAI-compatible chat completions (OpenRouter by default).
    The API key may also come from the admin setting `openrouter_key`, which wins.
    """
    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""
    default_model: str = "meta-llama/llama-3.2-3b-instruct:free"
    dry_run: bool = False
    site_url: str = "http://localhost:5000"
    app_name: str = "Mitra AI - Academic Document Creator"
    params: Dict[str, Any] = field(default_factory=lambda: {"max_tokens": 800, "temperature": 0.7})


@dataclass
class LLMPerfSettings:
    """LLM: timeout, retry, worker pool"""
    timeout_seconds: float = 60.0
    max_retries: int = 0
    retry_backoff: float = 1.5
    max_workers: int = 8


class Settings:
    def __init__(self):
        self.env = os.getenv("MITRA_ENV", "dev")
        a = _section("api")
        self.api = ApiSettings(
            host=str(a.get("host", os.getenv("API_HOST", "127.0.0.1"))),
            port=int(a.get("port", os.getenv("API_PORT", "8000"))),
        )
        au = _section("auth")
        self.auth = AuthSettings(
            secret_key=os.getenv("MITRA_SECRET_KEY") or str(au.get("secret_key", "change-me-in-local")),
            token_expire_hours=float(au.get("token_expire_hours", 24)),
            admin_username=str(au.get("admin_username", "admin")),
            admin_default_password=str(au.get("admin_default_password", "admin123")),
        )
        c = _section("credits")
        self.credits = CreditSettings(
            default_allowance=int(c.get("default_allowance", 100)),
            fallback_cost=int(c.get("fallback_cost", 1)),
        )
        r = _section("registry")
        self.registry = RegistrySettings(
            cache_ttl_seconds=float(r.get("cache_ttl_seconds", 5)),
        )
        ll = _section("llm")
        self.llm = LLMSettings(
            base_url=(ll.get("base_url") or "https://openrouter.ai/api/v1").strip(),
            api_key=os.getenv("OPENROUTER_API_KEY") or (ll.get("api_key") or "").strip(),
            default_model=(ll.get("default_model") or "meta-llama/llama-3.2-3b-instruct:free").strip(),
            dry_run=os.getenv("LLM_DRY_RUN", "").lower() == "true" or ll.get("dry_run") is True,
            site_url=os.getenv("OPENROUTER_SITE_URL") or ll.get("site_url") or "http://localhost:5000",
            app_name=ll.get("app_name") or "Mitra AI - Academic Document Creator",
            params=ll.get("params") or {"max_tokens": 800, "temperature": 0.7},
        )
        lp = _section("perf_llm")
        self.perf_llm = LLMPerfSettings(
            timeout_seconds=float(lp.get("timeout_seconds", 60)),
            max_retries=int(lp.get("max_retries", 0)),
            retry_backoff=float(lp.get("retry_backoff", 1.5)),
            max_workers=int(lp.get("max_workers", 8)),
        )

    def print_info(self):
        print(f"""
========================================
  Mitra AI chat service
========================================
  Env: {self.env}
  API: {self.api.host}:{self.api.port}
  LLM: {self.llm.base_url} (default={self.llm.default_model}, dry_run={self.llm.dry_run})
  Credits: allowance={self.credits.default_allowance}, fallback_cost={self.credits.fallback_cost}
========================================
        """)


# Global singleton
settings = Settings()
