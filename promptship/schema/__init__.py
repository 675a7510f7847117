"""Repository layout and mutation-safety policy definitions."""

from promptship.schema.layout import (
    INITIAL_VERSION,
    REQUIRED_ROLES,
    ROLE_FILENAMES,
    ArtifactKind,
    FileRole,
    IdentifierPolicy,
    PathInfo,
    artifact_directory,
    bump_patch,
    classify_path,
    conforms_to_policy,
    file_type,
    label_path,
    new_identifier,
    parse_version,
    slugify,
)
from promptship.schema.policies import (
    RULES,
    MutationRule,
    Violation,
    check_mutation,
    extract_signature,
    render_rules_text,
)

__all__ = [
    "INITIAL_VERSION",
    "REQUIRED_ROLES",
    "ROLE_FILENAMES",
    "RULES",
    "ArtifactKind",
    "FileRole",
    "IdentifierPolicy",
    "MutationRule",
    "PathInfo",
    "Violation",
    "artifact_directory",
    "bump_patch",
    "check_mutation",
    "classify_path",
    "conforms_to_policy",
    "extract_signature",
    "file_type",
    "label_path",
    "new_identifier",
    "parse_version",
    "render_rules_text",
    "slugify",
]
