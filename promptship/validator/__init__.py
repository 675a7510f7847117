"""Post-generation validation of generated file sets."""

from promptship.validator.models import ChangeSet, GeneratedFile
from promptship.validator.validator import (
    ChangeSetValidator,
    build_body,
    build_title,
    imported_packages,
)

__all__ = [
    "ChangeSet",
    "ChangeSetValidator",
    "GeneratedFile",
    "build_body",
    "build_title",
    "imported_packages",
]
