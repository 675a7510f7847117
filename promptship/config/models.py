from pydantic import BaseModel, Field
from typing import Literal


class LLMSettings(BaseModel):
    provider: Literal["anthropic", "openai", "google", "ollama", "auto"] = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key_env: str = "ANTHROPIC_API_KEY"
    max_tokens: int = Field(default=16384, gt=0)
    temperature: float = Field(default=0.2, ge=0)
    base_url: str | None = None


class VCSConfig(BaseModel):
    provider: Literal["github"] = "github"
    token_env: str = "GITHUB_TOKEN"
    base_url: str | None = None
    branch_prefix: str = "ai-buildship/"
    branch_slug_max_length: int = Field(default=50, gt=0)
    blob_concurrency: int = Field(default=4, gt=0)


class PolicyConfig(BaseModel):
    identifier_policy: Literal["auto", "kebab", "token"] = "auto"
    fallback_identifier_policy: Literal["kebab", "token"] = "kebab"
    fuzzy_threshold: float = Field(default=0.85, gt=0, le=1)
    max_feedback_retries: int = Field(default=1, ge=0)


class PRConfig(BaseModel):
    title_prefix: str = "BuildShip AI"
    title_max_length: int = Field(default=72, gt=0)


class PromptShipConfig(BaseModel):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    vcs: VCSConfig = Field(default_factory=VCSConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    pr: PRConfig = Field(default_factory=PRConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
