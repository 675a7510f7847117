"""Pick a generator backend from whatever credentials the environment offers."""

from __future__ import annotations

import logging
import os

import httpx

from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMConfig, ProviderName

logger = logging.getLogger(__name__)

# (provider, key env vars, default model), in priority order.
_HOSTED: tuple[tuple[ProviderName, tuple[str, ...], str], ...] = (
    ("anthropic", ("ANTHROPIC_API_KEY",), "claude-sonnet-4-20250514"),
    ("openai", ("OPENAI_API_KEY",), "gpt-4o"),
    ("google", ("GOOGLE_API_KEY", "GEMINI_API_KEY"), "gemini-2.5-pro"),
)


def _local_ollama_model(base_url: str) -> str | None:
    try:
        resp = httpx.get(f"{base_url}/api/tags", timeout=2.0)
        resp.raise_for_status()
    except httpx.HTTPError:
        return None
    models = resp.json().get("models", [])
    return models[0]["name"] if models else None


def auto_detect_provider(model: str | None = None) -> LLMProvider:
    """First hosted provider with a key set, else a running local Ollama.

    ``model`` (or PROMPTSHIP_MODEL) overrides the provider's default model.
    Raises ValueError when nothing is available.
    """
    from promptship.llm import provider_class

    model = model or os.environ.get("PROMPTSHIP_MODEL")
    for provider, key_vars, default_model in _HOSTED:
        api_key = next((os.environ[v] for v in key_vars if os.environ.get(v)), None)
        if api_key:
            logger.info("Auto-detected %s from environment", provider)
            config = LLMConfig(provider=provider, model=model or default_model, api_key=api_key)
            return provider_class(provider)(config)

    from promptship.llm.ollama import DEFAULT_BASE_URL

    base_url = os.environ.get("OLLAMA_HOST", DEFAULT_BASE_URL).rstrip("/")
    if "://" not in base_url:
        base_url = f"http://{base_url}"
    local_model = _local_ollama_model(base_url)
    if local_model:
        logger.info("Auto-detected local Ollama model %s", local_model)
        config = LLMConfig(provider="ollama", model=model or local_model, base_url=base_url)
        return provider_class("ollama")(config)

    raise ValueError(
        "No LLM provider found. Set llm.provider in promptship.yaml or export an "
        "API key (ANTHROPIC_API_KEY, OPENAI_API_KEY, GOOGLE_API_KEY) or start Ollama."
    )
