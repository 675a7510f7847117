"""Pydantic models for the LLM subsystem."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

ProviderName = Literal["anthropic", "openai", "google", "ollama"]


class LLMError(Exception):
    """A generator backend call failed.

    ``retryable`` marks rate limits and transient network failures; the
    pipeline itself never retries, it only reports.
    """

    def __init__(
        self, provider: str, operation: str, cause: Exception, retryable: bool = False
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.retryable = retryable
        super().__init__(f"{provider} {operation} failed: {cause}")
        self.__cause__ = cause


class LLMConfig(BaseModel):
    """Resolved settings for one provider instance (API key already looked up)."""

    provider: ProviderName
    model: str
    max_tokens: int = 16384
    temperature: float = 0.2
    api_key: str | None = None
    base_url: str | None = None


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class LLMResponse(BaseModel):
    """Text returned by a backend, with usage and whether it hit the token cap."""

    content: str
    usage: TokenUsage
    model: str
    truncated: bool = False
