"""LLM Provider interface: abstract base for upstream completion services.

Every provider implements ``complete``: one request, raw text back. Retry,
backoff and deadlines belong to the caller (the plan orchestrator), so a
provider only has to classify its failures into ``LLMError`` with
``retryable`` set.
"""

from __future__ import annotations

import abc
import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503})

STATUS_MESSAGES: Dict[int, str] = {
    400: "Bad request - please check your request format",
    401: "Invalid API key - please check your provider configuration",
    402: "Insufficient credits - your API key has run out of credits",
    404: "Model not found - the model name may be outdated",
    429: "Rate limit exceeded - please wait a moment and try again",
    502: "Bad gateway - temporary issue with the AI provider, please try again in a few minutes",
    503: "Service unavailable - the AI service is temporarily down, please try again later",
}


@dataclass(frozen=True)
class LLMConfig:
    """Immutable configuration for a single LLM call."""

    model: str = ""
    temperature: float = 0.1
    max_tokens: int = 4000
    timeout_seconds: float = 60.0


@dataclass
class LLMResponse:
    """Standardised response from any LLM provider."""

    raw_text: str
    model: str = ""
    provider: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    stop_reason: str = ""
    prompt_hash: str = ""


def prompt_hash(system_prompt: str, user_prompt: str) -> str:
    return hashlib.sha256((system_prompt + user_prompt).encode()).hexdigest()[:16]


def is_retryable_status(status: Optional[int]) -> bool:
    return status in RETRYABLE_STATUSES


def status_message(status: Optional[int], detail: str = "") -> str:
    """User-facing message for an upstream HTTP status."""
    if status in STATUS_MESSAGES:
        return f"Upstream error ({status}): {STATUS_MESSAGES[status]}"
    if status is None:
        return f"Upstream connection failed: {detail}" if detail else "Upstream connection failed"
    return f"Upstream API error: {status} - {detail[:200]}"


class LLMProvider(abc.ABC):
    """Abstract base class for LLM providers."""

    provider_name: str = "base"
    default_model: str = ""

    @abc.abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        config: Optional[LLMConfig] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Send one prompt and return the raw text response.

        Parameters
        ----------
        system_prompt : str
            System-level instruction (persona, rules, output format).
        user_prompt : str
            User-level content (the serialized payload).
        config : LLMConfig, optional
            Override default config for this call.
        response_schema : dict, optional
            JSON schema for providers that support structured output.

        Raises
        ------
        LLMError
            On API failure. ``retryable`` is True for connection errors and
            statuses in ``RETRYABLE_STATUSES``.
        """
        ...

    def _default_config(self, config: Optional[LLMConfig]) -> LLMConfig:
        return config or LLMConfig()

    def _model(self, cfg: LLMConfig) -> str:
        return cfg.model or self.default_model


class LLMError(Exception):
    """Base exception for LLM provider errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code

    @classmethod
    def from_status(cls, status: int, provider: str = "", detail: str = "") -> "LLMError":
        return cls(
            status_message(status, detail),
            provider=provider,
            retryable=is_retryable_status(status),
            status_code=status,
        )


class LLMTimeoutError(LLMError):
    """LLM call exceeded its wall-clock deadline."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message, provider=provider, retryable=False)
