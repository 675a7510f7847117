"""Google Gemini adapter for promptship."""

from __future__ import annotations

from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMConfig, LLMResponse, TokenUsage

_MAX_TOKENS_FINISH = "MAX_TOKENS"


class GeminiProvider(LLMProvider):
    name = "gemini"

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        genai.configure(api_key=config.api_key)

    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int = 16384,
        *,
        json_schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        # The system instruction is bound to the model object, so build one per call.
        model = genai.GenerativeModel(self.config.model, system_instruction=system)
        generation_config = genai.types.GenerationConfig(
            max_output_tokens=max_tokens,
            temperature=self.config.temperature,
            response_mime_type="application/json" if json_schema is not None else None,
        )
        try:
            response = await model.generate_content_async(
                user, generation_config=generation_config
            )
        except google_exceptions.GoogleAPIError as e:
            raise self._error(
                e, retryable=isinstance(e, google_exceptions.ResourceExhausted)
            ) from e

        truncated = False
        if response.candidates:
            finish = response.candidates[0].finish_reason
            truncated = getattr(finish, "name", str(finish)) == _MAX_TOKENS_FINISH
        try:
            text = response.text
        except ValueError:
            # Raised when the candidate has no text parts (blocked or empty).
            text = ""
        usage = response.usage_metadata
        return LLMResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=usage.prompt_token_count if usage else 0,
                output_tokens=usage.candidates_token_count if usage else 0,
            ),
            model=self.config.model,
            truncated=truncated,
        )
