"""Anthropic Claude provider implementation."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import anthropic

from .base import (
    LLMConfig,
    LLMError,
    LLMProvider,
    LLMResponse,
    prompt_hash,
    status_message,
)

logger = logging.getLogger(__name__)

JSON_ONLY_SUFFIX = (
    "\n\nReturn JSON only. Do not wrap it in markdown code fences and do not "
    "add explanations. The first character must be {."
)


class AnthropicProvider(LLMProvider):
    """LLM Provider backed by Anthropic Claude API."""

    provider_name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "claude-sonnet-4-5-20250929",
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        self.default_model = default_model
        self.base_url = base_url
        self._client = None

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            if not self.api_key:
                raise LLMError(
                    "ANTHROPIC_API_KEY is not set",
                    provider=self.provider_name,
                    status_code=401,
                )
            kwargs: Dict[str, Any] = {"api_key": self.api_key, "max_retries": 0}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = anthropic.Anthropic(**kwargs)
        return self._client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        config: Optional[LLMConfig] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        cfg = self._default_config(config)
        model = self._model(cfg)

        # No native schema parameter here; the prompt carries the format.
        full_system = system_prompt + JSON_ONLY_SUFFIX

        t0 = time.time()
        try:
            response = self.client.messages.create(
                model=model,
                max_tokens=cfg.max_tokens,
                temperature=cfg.temperature,
                system=full_system,
                messages=[{"role": "user", "content": user_prompt}],
                timeout=cfg.timeout_seconds,
            )
        except anthropic.APIStatusError as e:
            raise LLMError.from_status(
                e.status_code, provider=self.provider_name, detail=str(e.message),
            ) from e
        except anthropic.APIConnectionError as e:
            raise LLMError(
                status_message(None, str(e)),
                provider=self.provider_name,
                retryable=True,
            ) from e

        latency_ms = int((time.time() - t0) * 1000)
        raw_text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = getattr(response, "usage", None)

        return LLMResponse(
            raw_text=raw_text,
            model=model,
            provider=self.provider_name,
            input_tokens=getattr(usage, "input_tokens", 0) if usage else 0,
            output_tokens=getattr(usage, "output_tokens", 0) if usage else 0,
            latency_ms=latency_ms,
            stop_reason=getattr(response, "stop_reason", "") or "",
            prompt_hash=prompt_hash(full_system, user_prompt),
        )
