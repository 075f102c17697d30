"""LLM Provider abstraction layer.

Supports OpenRouter, OpenAI and Anthropic Claude behind one interface,
with classified errors and an audit log of upstream attempts.
"""

from .base import (
    LLMConfig,
    LLMError,
    LLMProvider,
    LLMResponse,
    LLMTimeoutError,
    RETRYABLE_STATUSES,
)
from .audit import AuditLogger, AuditRecord
from .registry import get_provider

__all__ = [
    "LLMConfig",
    "LLMError",
    "LLMProvider",
    "LLMResponse",
    "LLMTimeoutError",
    "RETRYABLE_STATUSES",
    "AuditLogger",
    "AuditRecord",
    "get_provider",
]
