"""Repository layout: artifact kinds, file roles, and path classification."""

from __future__ import annotations

import re
import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel

NODES_DIR = "nodes"
WORKFLOWS_DIR = "workflows"
LABELS_DIR = "flow-id-to-label"
MANIFEST_PATH = "package.json"
INITIAL_VERSION = "1.0.0"


class ArtifactKind(str, Enum):
    NODE = "node"
    WORKFLOW = "workflow"
    EMBEDDED_NODE = "embedded_node"


class FileRole(str, Enum):
    MAIN = "main"
    INPUTS_SCHEMA = "inputs_schema"
    OUTPUTS_SCHEMA = "outputs_schema"
    META = "meta"
    FULL_SCHEMA = "full_schema"
    GRAPH = "graph"
    TRIGGERS = "triggers"
    CONFIG = "config"


ROLE_FILENAMES: dict[FileRole, str] = {
    FileRole.MAIN: "main.ts",
    FileRole.INPUTS_SCHEMA: "inputs.json",
    FileRole.OUTPUTS_SCHEMA: "output.json",
    FileRole.META: "meta.json",
    FileRole.FULL_SCHEMA: "schema.json",
    FileRole.GRAPH: "nodes.json",
    FileRole.TRIGGERS: "triggers.json",
    FileRole.CONFIG: "config.json",
}

# Ordered the way the files are listed to the generator.
REQUIRED_ROLES: dict[ArtifactKind, tuple[FileRole, ...]] = {
    ArtifactKind.NODE: (
        FileRole.MAIN,
        FileRole.INPUTS_SCHEMA,
        FileRole.OUTPUTS_SCHEMA,
        FileRole.META,
        FileRole.FULL_SCHEMA,
    ),
    ArtifactKind.WORKFLOW: (
        FileRole.GRAPH,
        FileRole.TRIGGERS,
        FileRole.INPUTS_SCHEMA,
        FileRole.OUTPUTS_SCHEMA,
        FileRole.META,
        FileRole.FULL_SCHEMA,
    ),
    ArtifactKind.EMBEDDED_NODE: (
        FileRole.MAIN,
        FileRole.INPUTS_SCHEMA,
        FileRole.OUTPUTS_SCHEMA,
        FileRole.CONFIG,
    ),
}

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_KEBAB_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

IdentifierPolicy = Literal["kebab", "token"]


class PathInfo(BaseModel):
    """What a repository-relative path resolves to."""

    category: Literal["artifact", "manifest", "label"]
    kind: ArtifactKind | None = None
    identifier: str | None = None
    version: str | None = None
    workflow: str | None = None
    role: FileRole | None = None

    @property
    def artifact_key(self) -> tuple[str, str, str | None]:
        """Groups the files of one artifact instance (kind, id path, version)."""
        if self.kind == ArtifactKind.EMBEDDED_NODE:
            return (self.kind.value, f"{self.workflow}/{self.identifier}", None)
        return (self.kind.value, self.identifier or "", self.version)

    @property
    def directory(self) -> str:
        return artifact_directory(
            self.kind, self.identifier or "", self.version, workflow=self.workflow
        )


def artifact_directory(
    kind: ArtifactKind,
    identifier: str,
    version: str | None = None,
    *,
    workflow: str | None = None,
) -> str:
    """Directory holding an artifact's files, without a trailing slash."""
    if kind == ArtifactKind.NODE:
        return f"{NODES_DIR}/{identifier}/{version or INITIAL_VERSION}"
    if kind == ArtifactKind.WORKFLOW:
        return f"{WORKFLOWS_DIR}/{identifier}"
    return f"{WORKFLOWS_DIR}/{workflow}/{NODES_DIR}/{identifier}"


def label_path(identifier: str) -> str:
    return f"{LABELS_DIR}/{identifier}.txt"


_ROLE_BY_FILENAME = {name: role for role, name in ROLE_FILENAMES.items()}


def _role_for(kind: ArtifactKind, filename: str) -> FileRole | None:
    role = _ROLE_BY_FILENAME.get(filename)
    if role is None or role not in REQUIRED_ROLES[kind]:
        return None
    return role


def classify_path(path: str) -> PathInfo | None:
    """Resolve a path to exactly one sanctioned shape, or None if non-conformant."""
    if not path or path.startswith("/") or "\\" in path:
        return None
    parts = path.split("/")
    if any(not _SEGMENT_RE.match(p) or p in (".", "..") for p in parts):
        return None

    if parts == [MANIFEST_PATH]:
        return PathInfo(category="manifest")

    if len(parts) == 2 and parts[0] == LABELS_DIR and parts[1].endswith(".txt"):
        identifier = parts[1][: -len(".txt")]
        if not identifier:
            return None
        return PathInfo(category="label", identifier=identifier)

    # nodes/<id>/<version>/<file>
    if len(parts) == 4 and parts[0] == NODES_DIR:
        _, identifier, version, filename = parts
        role = _role_for(ArtifactKind.NODE, filename)
        if role is None or not _VERSION_RE.match(version):
            return None
        return PathInfo(
            category="artifact",
            kind=ArtifactKind.NODE,
            identifier=identifier,
            version=version,
            role=role,
        )

    # workflows/<id>/<file>
    if len(parts) == 3 and parts[0] == WORKFLOWS_DIR:
        _, identifier, filename = parts
        role = _role_for(ArtifactKind.WORKFLOW, filename)
        if role is None:
            return None
        return PathInfo(
            category="artifact",
            kind=ArtifactKind.WORKFLOW,
            identifier=identifier,
            role=role,
        )

    # workflows/<wf>/nodes/<id>/<file>
    if len(parts) == 5 and parts[0] == WORKFLOWS_DIR and parts[2] == NODES_DIR:
        _, workflow, _, identifier, filename = parts
        role = _role_for(ArtifactKind.EMBEDDED_NODE, filename)
        if role is None:
            return None
        return PathInfo(
            category="artifact",
            kind=ArtifactKind.EMBEDDED_NODE,
            identifier=identifier,
            workflow=workflow,
            role=role,
        )

    return None


def file_type(path: str) -> Literal["node", "workflow", "config"]:
    """Coarse classification derived from the path, never from the generator."""
    if path.startswith(f"{WORKFLOWS_DIR}/"):
        return "workflow"
    if path.startswith(f"{NODES_DIR}/"):
        return "node"
    return "config"


# -- versions ----------------------------------------------------------------


def parse_version(version: str) -> tuple[int, int, int]:
    m = _VERSION_RE.match(version.strip())
    if not m:
        raise ValueError(f"Invalid semantic version: {version!r}")
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def is_version(version: str) -> bool:
    return bool(_VERSION_RE.match(version.strip()))


def bump_patch(version: str) -> str:
    major, minor, patch = parse_version(version)
    return f"{major}.{minor}.{patch + 1}"


# -- identifiers -------------------------------------------------------------


def is_kebab(identifier: str) -> bool:
    return bool(_KEBAB_RE.match(identifier))


def is_token(identifier: str) -> bool:
    try:
        return str(uuid.UUID(identifier)) == identifier.lower()
    except ValueError:
        return False


def conforms_to_policy(identifier: str, policy: IdentifierPolicy) -> bool:
    if policy == "token":
        return is_token(identifier)
    return is_kebab(identifier)


def slugify(text: str, max_length: int = 50) -> str:
    """Lower-case, collapse non-alphanumeric runs to '-', trim, truncate."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def new_identifier(policy: IdentifierPolicy, label: str) -> str:
    """Generate a fresh identifier under the given policy."""
    if policy == "token":
        return str(uuid.uuid4())
    return slugify(label) or "untitled"
