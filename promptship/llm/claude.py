"""Anthropic Claude adapter for promptship."""

from __future__ import annotations

from typing import Any

from anthropic import APIError, AsyncAnthropic, RateLimitError

from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMConfig, LLMResponse, TokenUsage

# Claude has no JSON switch; starting the assistant turn with "{" keeps it
# from wrapping the document in prose or code fences.
_JSON_PREFILL = "{"


class ClaudeProvider(LLMProvider):
    name = "claude"

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._client = AsyncAnthropic(
            api_key=config.api_key,  # falls back to ANTHROPIC_API_KEY env var
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
        messages: list[dict[str, str]] = [{"role": "user", "content": user}]
        prefill = _JSON_PREFILL if json_schema is not None else ""
        if prefill:
            messages.append({"role": "assistant", "content": prefill})
        try:
            message = await self._client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens,
                temperature=self.config.temperature,
                system=system,
                messages=messages,
            )
        except APIError as e:
            raise self._error(e, retryable=isinstance(e, RateLimitError)) from e

        text = "".join(block.text for block in message.content if block.type == "text")
        return LLMResponse(
            content=prefill + text if text else "",
            usage=TokenUsage(
                input_tokens=message.usage.input_tokens,
                output_tokens=message.usage.output_tokens,
            ),
            model=message.model,
            truncated=message.stop_reason == "max_tokens",
        )
