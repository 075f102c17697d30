"""OpenAI-compatible chat completion providers.

``OpenAIProvider`` talks to the OpenAI API; ``OpenRouterProvider`` reuses
it against OpenRouter's OpenAI-compatible endpoint, which is the default
upstream for plan generation.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import openai

from .base import (
    LLMConfig,
    LLMError,
    LLMProvider,
    LLMResponse,
    prompt_hash,
    status_message,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM Provider backed by the OpenAI chat completions API."""

    provider_name = "openai"
    api_key_env = "OPENAI_API_KEY"
    base_url: Optional[str] = None

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key or os.environ.get(self.api_key_env, "")
        self.default_model = default_model
        if base_url:
            self.base_url = base_url
        self._client = None

    def _default_headers(self) -> Dict[str, str]:
        return {}

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.api_key:
                raise LLMError(
                    f"{self.api_key_env} is not set",
                    provider=self.provider_name,
                    status_code=401,
                )
            # Retries are driven by the orchestrator, not the SDK.
            self._client = openai.OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
                default_headers=self._default_headers() or None,
            )
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

        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            "timeout": cfg.timeout_seconds,
        }
        if response_schema:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "implementation_plan",
                    "strict": False,
                    "schema": response_schema,
                },
            }

        t0 = time.time()
        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            raise LLMError.from_status(
                e.status_code, provider=self.provider_name, detail=str(e.message),
            ) from e
        except openai.APIConnectionError as e:
            raise LLMError(
                status_message(None, str(e)),
                provider=self.provider_name,
                retryable=True,
            ) from e

        latency_ms = int((time.time() - t0) * 1000)
        choice = response.choices[0] if response.choices else None
        raw_text = (choice.message.content or "") if choice else ""
        usage = response.usage

        logger.debug(
            "%s completion: model=%s chars=%d latency=%dms",
            self.provider_name, model, len(raw_text), latency_ms,
        )
        return LLMResponse(
            raw_text=raw_text,
            model=model,
            provider=self.provider_name,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms,
            stop_reason=(choice.finish_reason or "") if choice else "",
            prompt_hash=prompt_hash(system_prompt, user_prompt),
        )


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter through its OpenAI-compatible API."""

    provider_name = "openrouter"
    api_key_env = "OPENROUTER_API_KEY"
    base_url = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "openai/gpt-4o-mini",
        base_url: Optional[str] = None,
        app_title: str = "Opportunity Planner",
        referer: Optional[str] = None,
    ):
        super().__init__(api_key=api_key, default_model=default_model, base_url=base_url)
        self.app_title = app_title
        self.referer = referer or os.environ.get("OPENROUTER_REFERER", "")

    def _default_headers(self) -> Dict[str, str]:
        headers = {"X-Title": self.app_title}
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        return headers
