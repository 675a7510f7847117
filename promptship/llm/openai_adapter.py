"""OpenAI adapter for promptship (also serves OpenAI-compatible endpoints via base_url)."""

from __future__ import annotations

from typing import Any

from openai import APIError, AsyncOpenAI, RateLimitError

from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMConfig, LLMResponse, TokenUsage


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._client = AsyncOpenAI(
            api_key=config.api_key,  # falls back to OPENAI_API_KEY env var
            base_url=config.base_url,
            max_retries=2,
        )

    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int = 16384,
        *,
        json_schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        request: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens,
            "temperature": self.config.temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if json_schema is not None:
            request["response_format"] = {"type": "json_object"}
        try:
            response = await self._client.chat.completions.create(**request)
        except APIError as e:
            raise self._error(e, retryable=isinstance(e, RateLimitError)) from e

        choice = response.choices[0]
        usage = response.usage
        return LLMResponse(
            content=choice.message.content or "",
            usage=TokenUsage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            ),
            model=response.model,
            truncated=choice.finish_reason == "length",
        )
