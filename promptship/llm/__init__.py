"""Generator backends: one LLMProvider per hosted or local model API."""

import os

from promptship.config.models import LLMSettings
from promptship.llm.base import LLMProvider
from promptship.llm.claude import ClaudeProvider
from promptship.llm.gemini import GeminiProvider
from promptship.llm.models import LLMConfig, LLMError, LLMResponse, TokenUsage
from promptship.llm.ollama import OllamaProvider
from promptship.llm.openai_adapter import OpenAIProvider

_PROVIDER_MAP: dict[str, type[LLMProvider]] = {
    "anthropic": ClaudeProvider,
    "openai": OpenAIProvider,
    "google": GeminiProvider,
    "ollama": OllamaProvider,
}


def provider_class(name: str) -> type[LLMProvider]:
    try:
        return _PROVIDER_MAP[name]
    except KeyError:
        raise ValueError(
            f"Unsupported LLM provider: {name!r}. Supported: {', '.join(_PROVIDER_MAP)}"
        ) from None


def create_llm_provider(config: LLMSettings) -> LLMProvider:
    """Build the provider named in the ``llm`` config section.

    The API key is read from the env var named by ``api_key_env`` (Ollama
    needs none). ``auto`` defers to auto_detect_provider().
    """
    if config.provider == "auto":
        from promptship.llm.auto_detect import auto_detect_provider

        return auto_detect_provider()

    cls = provider_class(config.provider)
    api_key = None
    if config.provider != "ollama":
        api_key = os.environ.get(config.api_key_env)
        if not api_key:
            raise ValueError(
                f"Missing API key: set environment variable {config.api_key_env!r}"
            )
    return cls(
        LLMConfig(
            provider=config.provider,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            api_key=api_key,
            base_url=config.base_url,
        )
    )


__all__ = [
    "ClaudeProvider",
    "GeminiProvider",
    "LLMConfig",
    "LLMError",
    "LLMProvider",
    "LLMResponse",
    "OllamaProvider",
    "OpenAIProvider",
    "TokenUsage",
    "create_llm_provider",
    "provider_class",
]
