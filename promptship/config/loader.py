"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import PromptShipConfig

# Only these variables may be interpolated into config values.
_ALLOWED_ENV_VARS: frozenset[str] = frozenset(
    {
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "GOOGLE_API_KEY",
        "GEMINI_API_KEY",
        "GITHUB_TOKEN",
        "GITHUB_API_URL",
        "OLLAMA_HOST",
        "PROMPTSHIP_MODEL",
        "PROMPTSHIP_LOG_LEVEL",
    }
)

_VAR_RE = re.compile(r"\$\{(\w+)\}")
CONFIG_ENV_VAR = "PROMPTSHIP_CONFIG"


def _candidate_paths(cli_path: str | None) -> list[Path]:
    paths = []
    if cli_path:
        paths.append(Path(cli_path))
    if os.environ.get(CONFIG_ENV_VAR):
        paths.append(Path(os.environ[CONFIG_ENV_VAR]))
    paths.append(Path("promptship.yaml"))
    paths.append(Path.home() / ".promptship" / "config.yaml")
    return paths


def _read_config_file(path: Path) -> PromptShipConfig | None:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping at the top level")
    try:
        return PromptShipConfig.model_validate(_expand_env_vars(raw))
    except ValidationError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def load_config(cli_path: str | None = None) -> PromptShipConfig:
    """First config found wins: --config, $PROMPTSHIP_CONFIG, ./promptship.yaml,
    ~/.promptship/config.yaml. Empty files are skipped; defaults otherwise.
    """
    for path in _candidate_paths(cli_path):
        if not path.exists():
            continue
        config = _read_config_file(path)
        if config is not None:
            return config
    return PromptShipConfig()


def _substitute(match: re.Match) -> str:
    name = match.group(1)
    if name not in _ALLOWED_ENV_VARS:
        raise ValueError(f"Environment variable {name!r} is not allowed in config")
    value = os.environ.get(name)
    if value is None:
        raise ValueError(f"Environment variable {name!r} is not set")
    return value


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return _VAR_RE.sub(_substitute, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `promptship config init`
DEFAULT_CONFIG_TEMPLATE = """\
# promptship.yaml

# Generator backend
llm:
  provider: "anthropic"        # anthropic | openai | google | ollama | auto
  model: "claude-sonnet-4-20250514"
  api_key_env: "ANTHROPIC_API_KEY"
  max_tokens: 16384
  temperature: 0.2
  # base_url: "http://localhost:11434"   # ollama only

# Target repository host
vcs:
  provider: "github"
  token_env: "GITHUB_TOKEN"
  # base_url: "https://github.example.com/api/v3"
  branch_prefix: "ai-buildship/"
  branch_slug_max_length: 50
  blob_concurrency: 4

# Generation policy
policy:
  identifier_policy: "auto"    # auto | kebab | token
  fallback_identifier_policy: "kebab"
  fuzzy_threshold: 0.85
  max_feedback_retries: 1

# Pull requests
pr:
  title_prefix: "BuildShip AI"
  title_max_length: 72

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
