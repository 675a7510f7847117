"""Pydantic models for validated change sets."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from promptship.schema.layout import file_type


class GeneratedFile(BaseModel):
    """A generated file. ``type`` is derived from the path, never supplied."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def type(self) -> Literal["node", "workflow", "config"]:
        return file_type(self.path)


class ChangeSet(BaseModel):
    """Validated, ordered file set ready for publishing. Never mutated."""

    model_config = ConfigDict(frozen=True)

    files: tuple[GeneratedFile, ...] = Field(min_length=1)
    title: str
    summary: str
    body: str = ""

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]
