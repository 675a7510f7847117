"""Abstract LLM interface for promptship."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from promptship.llm.models import LLMConfig, LLMError, LLMResponse


class LLMProvider(ABC):
    """A backend that turns (system instruction, user prompt) into one text reply.

    The generator always wants a single JSON document back. When
    ``json_schema`` is passed, adapters put their backend into whatever JSON
    mode it offers; the expected shape is also spelled out in the prompt, so
    a backend without a JSON mode still works.
    """

    name: str = "llm"

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    @abstractmethod
    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int = 16384,
        *,
        json_schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        ...

    def _error(self, cause: Exception, retryable: bool = False) -> LLMError:
        return LLMError(self.name, "generate", cause, retryable=retryable)
