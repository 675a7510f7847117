"""Pydantic models exchanged across the generator boundary."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SUMMARY = "Automated BuildShip Update"


class GenerationRequest(BaseModel):
    """Everything a generator backend receives."""

    model_config = ConfigDict(frozen=True)

    system_instruction: str
    user_prompt: str
    response_schema: dict[str, Any]


class RawFile(BaseModel):
    """One {path, content} pair as returned by the generator."""

    path: str = Field(min_length=1)
    content: str


class GenerationResult(BaseModel):
    """Generator output before validation."""

    files: list[RawFile]
    summary: str = DEFAULT_SUMMARY
