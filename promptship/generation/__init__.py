"""Generation request building and the generator boundary."""

from promptship.generation.builder import (
    RESPONSE_SCHEMA,
    build_generation_request,
    describe_plan,
)
from promptship.generation.generator import (
    Generator,
    LLMGenerator,
    parse_generation,
    strip_code_fences,
)
from promptship.generation.models import GenerationRequest, GenerationResult, RawFile
from promptship.generation.prompts import SYSTEM_INSTRUCTION

__all__ = [
    "RESPONSE_SCHEMA",
    "SYSTEM_INSTRUCTION",
    "GenerationRequest",
    "GenerationResult",
    "Generator",
    "LLMGenerator",
    "RawFile",
    "build_generation_request",
    "describe_plan",
    "parse_generation",
    "strip_code_fences",
]
