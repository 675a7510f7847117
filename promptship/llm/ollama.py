"""Ollama adapter for promptship, talking to the local REST API over httpx."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMConfig, LLMResponse, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "0.0.0.0"})
# Local models writing a whole node can be slow.
_TIMEOUT = httpx.Timeout(600.0, connect=5.0)


def _validate_base_url(url: str) -> str:
    """Reject non-http(s) and header-injection URLs; warn on remote hosts."""
    if "\r" in url or "\n" in url:
        raise ValueError("CRLF injection detected in base_url")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Ollama base_url must be http(s), got {parsed.scheme!r}")
    if parsed.hostname not in _LOCAL_HOSTS:
        logger.warning("Ollama base_url %s is not local; generated code leaves this machine", parsed.hostname)
    return url


class OllamaProvider(LLMProvider):
    name = "ollama"

    def __init__(self, config: LLMConfig) -> None:
        super().__init__(config)
        self._base_url = _validate_base_url((config.base_url or DEFAULT_BASE_URL).rstrip("/"))

    async def generate(
        self,
        system: str,
        user: str,
        max_tokens: int = 16384,
        *,
        json_schema: dict[str, Any] | None = None,
    ) -> LLMResponse:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "stream": False,
            "options": {"num_predict": max_tokens, "temperature": self.config.temperature},
        }
        if json_schema is not None:
            payload["format"] = "json"
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
                resp = await client.post(f"{self._base_url}/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise self._error(
                e, retryable=isinstance(e, (httpx.TimeoutException, httpx.ConnectError))
            ) from e

        return LLMResponse(
            content=(data.get("message") or {}).get("content", ""),
            usage=TokenUsage(
                input_tokens=data.get("prompt_eval_count", 0),
                output_tokens=data.get("eval_count", 0),
            ),
            model=data.get("model", self.config.model),
            truncated=data.get("done_reason") == "length",
        )
