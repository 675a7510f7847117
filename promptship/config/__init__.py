from .loader import load_config
from .models import (
    LLMSettings,
    PolicyConfig,
    PromptShipConfig,
    PRConfig,
    VCSConfig,
)

__all__ = [
    "LLMSettings",
    "PRConfig",
    "PolicyConfig",
    "PromptShipConfig",
    "VCSConfig",
    "load_config",
]
