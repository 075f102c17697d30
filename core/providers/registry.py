"""Upstream provider factory.

``PLANNER_LLM_PROVIDER`` selects one of the entries below; the model falls
back to the provider's default when ``PLANNER_LLM_MODEL`` is blank.
"""
from __future__ import annotations

import importlib
from typing import Any, Dict, List, Optional, Tuple

from .base import LLMProvider

# provider -> models; the first entry is the default.
# ``structured`` marks models that accept a JSON-schema response format.
MODEL_CATALOG: Dict[str, List[Dict[str, Any]]] = {
    "openrouter": [
        {"model_id": "openai/gpt-4o-mini", "label": "GPT-4o mini via OpenRouter", "structured": True},
        {"model_id": "anthropic/claude-sonnet-4.5", "label": "Claude Sonnet 4.5 via OpenRouter",
         "structured": False},
    ],
    "openai": [
        {"model_id": "gpt-4o-mini", "label": "GPT-4o mini", "structured": True},
        {"model_id": "gpt-4o", "label": "GPT-4o", "structured": True},
    ],
    "anthropic": [
        {"model_id": "claude-sonnet-4-5-20250929", "label": "Claude Sonnet 4.5", "structured": False},
        {"model_id": "claude-haiku-4-5-20251001", "label": "Claude Haiku 4.5", "structured": False},
    ],
}

# provider -> (module, class); imported on demand so an unused SDK is never loaded
_PROVIDER_CLASSES: Dict[str, Tuple[str, str]] = {
    "openrouter": (".openai_provider", "OpenRouterProvider"),
    "openai": (".openai_provider", "OpenAIProvider"),
    "anthropic": (".anthropic_provider", "AnthropicProvider"),
}


def get_models_for_provider(provider: str) -> List[Dict[str, Any]]:
    return list(MODEL_CATALOG.get(provider, []))


def get_default_model_for_provider(provider: str) -> Optional[str]:
    models = MODEL_CATALOG.get(provider)
    return models[0]["model_id"] if models else None


def supports_structured_output(provider: str, model: str) -> bool:
    """Catalog flag for ``model``; models outside the catalog are sent without a schema."""
    for entry in MODEL_CATALOG.get(provider, []):
        if entry["model_id"] == model:
            return bool(entry["structured"])
    return False


def get_provider(provider_name: str, model: Optional[str] = None) -> LLMProvider:
    """Instantiate the provider for ``provider_name``.

    Raises
    ------
    ValueError
        If the provider_name is not recognized.
    """
    try:
        module_name, class_name = _PROVIDER_CLASSES[provider_name]
    except KeyError:
        raise ValueError(
            f"Unknown LLM provider: {provider_name!r}. "
            f"Supported: {', '.join(_PROVIDER_CLASSES)}"
        ) from None

    cls = getattr(importlib.import_module(module_name, __package__), class_name)
    model = model or get_default_model_for_provider(provider_name)
    return cls(default_model=model) if model else cls()
