"""
LLM module

Provides:
- ModelClient: the single "complete chat" call used by the message pipeline
- OpenRouterClient / DryRunModelClient: HTTP and local implementations
- ModelRegistry: selectable models and their per-message cost
"""

from .llm_manager import (
    ModelClient,
    OpenRouterClient,
    DryRunModelClient,
    ProviderConfig,
    build_model_client,
    mask_secret,
)
from .model_registry import (
    ModelRegistry,
    ModelDescriptor,
    ModelExistsError,
)

__all__ = [
    "ModelClient",
    "OpenRouterClient",
    "DryRunModelClient",
    "ProviderConfig",
    "build_model_client",
    "mask_secret",
    "ModelRegistry",
    "ModelDescriptor",
    "ModelExistsError",
]
