"""promptship - turn plain-language requests into validated BuildShip pull requests."""

from promptship.config import PromptShipConfig, load_config
from promptship.errors import (
    AmbiguousMatchError,
    ChangeSetValidationError,
    GenerationError,
    PromptShipError,
    RemoteTransactionError,
)
from promptship.generation import LLMGenerator, build_generation_request
from promptship.pipeline import PromptPipeline
from promptship.reconciler import ContextReconciler, RepoContext
from promptship.validator import ChangeSet, ChangeSetValidator
from promptship.vcs import GitHubProvider, Publisher, create_provider

__version__ = "0.1.0"

__all__ = [
    "AmbiguousMatchError",
    "ChangeSet",
    "ChangeSetValidationError",
    "ChangeSetValidator",
    "ContextReconciler",
    "GenerationError",
    "GitHubProvider",
    "LLMGenerator",
    "PromptPipeline",
    "PromptShipConfig",
    "PromptShipError",
    "Publisher",
    "RemoteTransactionError",
    "RepoContext",
    "build_generation_request",
    "create_provider",
    "load_config",
]
