"""Generator boundary: request in, {files, summary} out.

Any async callable with the ``Generator`` shape can be plugged into the
pipeline; ``LLMGenerator`` is the production one, backed by an LLMProvider.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from promptship.errors import GenerationError
from promptship.generation.models import DEFAULT_SUMMARY, GenerationRequest, GenerationResult
from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMError

logger = logging.getLogger(__name__)

Generator = Callable[[GenerationRequest], Awaitable[GenerationResult]]

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?|\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence the model may wrap around its JSON."""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_RE.sub("", text).strip()
    return text


def parse_generation(text: str) -> GenerationResult:
    """Parse raw model output into a GenerationResult, or raise GenerationError."""
    if not text or not text.strip():
        raise GenerationError("Generator returned an empty response", raw=text)
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Generator response is not valid JSON: {e}", raw=text) from e
    if not isinstance(data, dict):
        raise GenerationError(
            f"Generator response must be a JSON object, got {type(data).__name__}", raw=text
        )
    if not data.get("summary"):
        data["summary"] = DEFAULT_SUMMARY
    try:
        return GenerationResult.model_validate(data)
    except ValidationError as e:
        raise GenerationError(f"Generator response has the wrong shape: {e}", raw=text) from e


class LLMGenerator:
    """Generator backed by an LLMProvider in JSON mode."""

    def __init__(self, llm: LLMProvider, max_tokens: int | None = None) -> None:
        self.llm = llm
        self.max_tokens = max_tokens or llm.config.max_tokens

    async def __call__(self, request: GenerationRequest) -> GenerationResult:
        try:
            response = await self.llm.generate(
                request.system_instruction,
                request.user_prompt,
                self.max_tokens,
                json_schema=request.response_schema,
            )
        except (LLMError, ValueError) as e:
            raise GenerationError(f"Failed to generate code. {e}") from e

        logger.info(
            "generation finished: model=%s input_tokens=%d output_tokens=%d",
            response.model,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        if response.truncated:
            raise GenerationError(
                f"Failed to generate code. Output was cut off at {self.max_tokens} tokens; "
                "raise llm.max_tokens or narrow the request.",
                raw=response.content,
            )
        result = parse_generation(response.content)
        logger.debug("generator returned %d files", len(result.files))
        return result
