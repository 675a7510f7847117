"""Index of existing artifacts, plus parsers for the raw context strings."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Iterator

from pydantic import BaseModel, ConfigDict

from promptship.schema.layout import INITIAL_VERSION, ArtifactKind, is_version, parse_version

logger = logging.getLogger(__name__)

_WORKFLOW_PREFIXES = ("workflow:", "workflows/")
_NODE_PREFIXES = ("node:", "nodes/")


class IndexedArtifact(BaseModel):
    """Last-known state of one existing artifact."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    kind: ArtifactKind
    version: str | None = None

    @property
    def effective_version(self) -> str:
        """Indexed version, assuming the initial version when none was recorded."""
        return self.version or INITIAL_VERSION


def _parse_entry(raw: str) -> IndexedArtifact | None:
    entry = raw.strip().strip("/")
    if not entry:
        return None
    kind = ArtifactKind.NODE
    lowered = entry.lower()
    for prefix in _WORKFLOW_PREFIXES:
        if lowered.startswith(prefix):
            kind = ArtifactKind.WORKFLOW
            entry = entry[len(prefix):]
            break
    else:
        for prefix in _NODE_PREFIXES:
            if lowered.startswith(prefix):
                entry = entry[len(prefix):]
                break

    version: str | None = None
    if "@" in entry:
        entry, _, version = entry.rpartition("@")
    elif "/" in entry:
        # nodes/<id>/<version> folder form
        head, _, tail = entry.rpartition("/")
        if is_version(tail):
            entry, version = head, tail
    if version is not None and not is_version(version):
        logger.warning("Ignoring malformed version %r for %s", version, entry)
        version = None
    entry = entry.strip()
    if not entry:
        return None
    return IndexedArtifact(identifier=entry, kind=kind, version=version)


class ExistingArtifactIndex:
    """(kind, identifier) -> last-known version, built fresh per request.

    Lookups are case-insensitive and ignore version suffixes. When an
    identifier appears with several versions, the highest one wins. A node
    and a workflow may share an identifier; they are kept apart.
    """

    def __init__(self, artifacts: Iterable[IndexedArtifact] = ()) -> None:
        entries: dict[tuple[ArtifactKind, str], IndexedArtifact] = {}
        for art in artifacts:
            key = (art.kind, art.identifier.lower())
            current = entries.get(key)
            if current is None or _newer(art.version, current.version):
                entries[key] = art
        self._entries = entries

    @classmethod
    def from_entries(cls, raw_entries: Iterable[str]) -> ExistingArtifactIndex:
        parsed = (_parse_entry(e) for e in raw_entries)
        return cls(a for a in parsed if a is not None)

    def get(self, identifier: str, kind: ArtifactKind | None = None) -> IndexedArtifact | None:
        """Entry for an identifier; without a kind the node wins over a same-named workflow."""
        key = _strip_version(identifier).lower()
        if kind is not None:
            return self._entries.get((kind, key))
        found = self.lookup(identifier)
        return found[0] if found else None

    def lookup(self, identifier: str) -> list[IndexedArtifact]:
        """Every kind of artifact registered under this identifier."""
        key = _strip_version(identifier).lower()
        return [
            self._entries[(kind, key)]
            for kind in (ArtifactKind.NODE, ArtifactKind.WORKFLOW)
            if (kind, key) in self._entries
        ]

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and bool(self.lookup(identifier))

    def __iter__(self) -> Iterator[IndexedArtifact]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def identifiers(self) -> list[str]:
        return list(dict.fromkeys(a.identifier for a in self._entries.values()))

    def describe(self) -> list[str]:
        """Human-readable entries for prompts and CLI output."""
        out = []
        for art in self._entries.values():
            if art.kind == ArtifactKind.WORKFLOW:
                out.append(f"workflow:{art.identifier}")
            else:
                out.append(f"{art.identifier}@{art.effective_version}")
        return out


def _strip_version(identifier: str) -> str:
    name, sep, version = identifier.rpartition("@")
    if sep and is_version(version):
        return name
    return identifier


def _newer(candidate: str | None, current: str | None) -> bool:
    if candidate is None:
        return False
    if current is None:
        return True
    return parse_version(candidate) > parse_version(current)


_MAPPING_LINE_RE = re.compile(r"^\s*([^:=\s]+)\s*[:=]\s*(.+?)\s*$")


def parse_label_mapping(text: str | None) -> dict[str, str]:
    """Parse the identifier -> label mapping (JSON object or 'id: label' lines)."""
    if not text or not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        return {str(k): str(v).strip() for k, v in data.items() if str(v).strip()}

    mapping: dict[str, str] = {}
    for line in text.splitlines():
        m = _MAPPING_LINE_RE.match(line)
        if m:
            mapping[m.group(1)] = m.group(2).strip("\"'")
    return mapping


_DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


def parse_manifest(text: str | None) -> frozenset[str] | None:
    """Dependency names declared in a package.json, or None when there is no manifest."""
    if text is None or not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Dependency manifest is not valid JSON (%s); treating as empty", e)
        return frozenset()
    if not isinstance(data, dict):
        return frozenset()
    names: set[str] = set()
    for section in _DEPENDENCY_SECTIONS:
        deps = data.get(section)
        if isinstance(deps, dict):
            names.update(deps)
    return frozenset(names)
