"""Post-generation gate: structural and mutation-safety checks on a file set.

Checks run in a fixed order and the first failure aborts:
    1. completeness    - every required file role of every artifact is present
    2. placement       - paths use a sanctioned shape, identifiers and versions
                         agree with the reconciled context
    3. auxiliary       - label entries for new identifiers, manifest for new imports
    4. mutation_safety - rule table applied to files of existing artifacts

The validator is pure: the same input always yields the same verdict.
"""

from __future__ import annotations

import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass

from promptship.config.models import PRConfig
from promptship.errors import ChangeSetValidationError
from promptship.generation.models import GenerationResult, RawFile
from promptship.reconciler.models import ReconciledContext
from promptship.schema.layout import (
    INITIAL_VERSION,
    REQUIRED_ROLES,
    ROLE_FILENAMES,
    ArtifactKind,
    FileRole,
    PathInfo,
    artifact_directory,
    bump_patch,
    classify_path,
    conforms_to_policy,
    label_path,
)
from promptship.schema.policies import check_mutation
from promptship.validator.models import ChangeSet, GeneratedFile

logger = logging.getLogger(__name__)

COMPLETENESS = "completeness"
PLACEMENT = "placement"
AUXILIARY = "auxiliary"
MUTATION_SAFETY = "mutation_safety"

_IMPORT_RES = (
    re.compile(r"""^\s*import\s+(?:type\s+)?(?:[^'"]*?\s+from\s+)?['"]([^'"]+)['"]""", re.M),
    re.compile(r"""\bimport\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""^\s*export\s+[^'"]*?\s+from\s+['"]([^'"]+)['"]""", re.M),
)

NODE_BUILTINS = frozenset(
    """assert async_hooks buffer child_process cluster console constants crypto dgram
    diagnostics_channel dns domain events fs http http2 https inspector module net os
    path perf_hooks process punycode querystring readline repl stream string_decoder
    timers tls trace_events tty url util v8 vm wasi worker_threads zlib""".split()
)


@dataclass(frozen=True)
class _Entry:
    file: RawFile
    info: PathInfo | None


def package_name(specifier: str) -> str | None:
    """npm package a module specifier resolves to, or None for local/builtin modules."""
    if specifier.startswith((".", "/", "node:")):
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        if len(parts) < 2:
            return None
        name = "/".join(parts[:2])
    else:
        name = parts[0]
    if name in NODE_BUILTINS:
        return None
    return name


def imported_packages(source: str) -> list[str]:
    """Bare npm packages imported by a TypeScript/JavaScript source, in order."""
    found: list[str] = []
    for pattern in _IMPORT_RES:
        for m in pattern.finditer(source):
            name = package_name(m.group(1))
            if name and name not in found:
                found.append(name)
    return found


def build_title(summary: str, config: PRConfig | None = None) -> str:
    config = config or PRConfig()
    first_line = next((ln.strip() for ln in summary.splitlines() if ln.strip()), "")
    first_line = first_line or "Automated update"
    title = f"{config.title_prefix}: {first_line}" if config.title_prefix else first_line
    if len(title) > config.title_max_length:
        title = title[: config.title_max_length - 3].rstrip() + "..."
    return title


def build_body(summary: str, files: list[GeneratedFile]) -> str:
    lines = [summary.strip(), "", "### Files", ""]
    lines.extend(f"- `{f.path}` ({f.type})" for f in files)
    return "\n".join(lines) + "\n"


class ChangeSetValidator:
    """Validates generator output against a reconciled context."""

    def __init__(self, reconciled: ReconciledContext, pr_config: PRConfig | None = None) -> None:
        self.reconciled = reconciled
        self.pr_config = pr_config or PRConfig()

    def validate(self, result: GenerationResult) -> ChangeSet:
        if not result.files:
            raise ChangeSetValidationError(COMPLETENESS, None, "no files were generated")
        entries = [_Entry(f, classify_path(f.path)) for f in result.files]
        groups = self._group(entries)

        self._check_completeness(groups)
        self._check_placement(entries, groups)
        self._check_auxiliary(entries, groups)
        self._check_mutation_safety(entries)

        files = [GeneratedFile(path=e.file.path, content=e.file.content) for e in entries]
        logger.info("change set accepted: %d files", len(files))
        return ChangeSet(
            files=tuple(files),
            title=build_title(result.summary, self.pr_config),
            summary=result.summary,
            body=build_body(result.summary, files),
        )

    # -- grouping --------------------------------------------------------------

    @staticmethod
    def _group(entries: list[_Entry]) -> dict[tuple, dict[FileRole, PathInfo]]:
        groups: dict[tuple, dict[FileRole, PathInfo]] = defaultdict(dict)
        for e in entries:
            if e.info is not None and e.info.category == "artifact":
                groups[e.info.artifact_key][e.info.role] = e.info
        return groups

    # -- 1. completeness -------------------------------------------------------

    def _check_completeness(self, groups: dict[tuple, dict[FileRole, PathInfo]]) -> None:
        for plan in self.reconciled.targets:
            key = (plan.kind.value, plan.identifier, plan.resolved_version)
            if plan.kind == ArtifactKind.WORKFLOW:
                key = (plan.kind.value, plan.identifier, None)
            present = groups.get(key, {})
            if not present:
                raise ChangeSetValidationError(
                    COMPLETENESS,
                    plan.directory + "/",
                    f"no files for planned {plan.action} of {plan.kind.value} "
                    f"{plan.identifier!r} at {plan.directory}/",
                )
            self._require_roles(plan.kind, plan.directory, present)

        for roles in groups.values():
            info = next(iter(roles.values()))
            self._require_roles(info.kind, info.directory, roles)

    @staticmethod
    def _require_roles(
        kind: ArtifactKind, directory: str, present: dict[FileRole, PathInfo]
    ) -> None:
        for role in REQUIRED_ROLES[kind]:
            if role not in present:
                path = f"{directory}/{ROLE_FILENAMES[role]}"
                raise ChangeSetValidationError(
                    COMPLETENESS,
                    path,
                    f"missing required {ROLE_FILENAMES[role]} for {kind.value} at {directory}/",
                )

    # -- 2. placement ----------------------------------------------------------

    def _check_placement(
        self, entries: list[_Entry], groups: dict[tuple, dict[FileRole, PathInfo]]
    ) -> None:
        seen: set[str] = set()
        for e in entries:
            if e.info is None:
                raise ChangeSetValidationError(
                    PLACEMENT,
                    e.file.path,
                    "path does not match any sanctioned layout (global node, workflow, "
                    "embedded node, label entry or package.json)",
                )
            if e.file.path in seen:
                raise ChangeSetValidationError(PLACEMENT, e.file.path, "path appears twice")
            seen.add(e.file.path)

        workflows_in_set = {
            info.identifier
            for roles in groups.values()
            for info in roles.values()
            if info.kind == ArtifactKind.WORKFLOW
        }
        for roles in groups.values():
            info = next(iter(roles.values()))
            path = next(iter(e.file.path for e in entries if e.info is info))
            if info.kind == ArtifactKind.EMBEDDED_NODE:
                self._place_embedded(info, path, workflows_in_set)
            else:
                self._place_top_level(info, path)

        artifact_ids = {info.identifier for roles in groups.values() for info in roles.values()}
        for e in entries:
            if e.info.category == "label" and e.info.identifier not in artifact_ids:
                if e.info.identifier not in self.reconciled.index:
                    raise ChangeSetValidationError(
                        PLACEMENT,
                        e.file.path,
                        f"label entry for {e.info.identifier!r}, which is neither in this "
                        "change set nor an existing artifact",
                    )

    def _place_top_level(self, info: PathInfo, path: str) -> None:
        index = self.reconciled.index
        existing = index.get(info.identifier, info.kind)
        other = index.get(info.identifier)
        if existing is None and other is not None:
            raise ChangeSetValidationError(
                PLACEMENT,
                path,
                f"{info.identifier!r} is an existing {other.kind.value}, "
                f"not a {info.kind.value}",
            )
        if existing is not None:
            if existing.identifier != info.identifier:
                raise ChangeSetValidationError(
                    PLACEMENT,
                    path,
                    f"existing identifier {existing.identifier!r} must be preserved verbatim",
                )
            if info.kind == ArtifactKind.NODE:
                expected = bump_patch(existing.effective_version)
                if info.version != expected:
                    raise ChangeSetValidationError(
                        PLACEMENT,
                        path,
                        f"update of {info.identifier!r} must use version {expected} "
                        f"(existing {existing.effective_version}), got {info.version}",
                    )
            return

        plan = self.reconciled.plan_for(info.identifier, info.kind)
        if plan is None or plan.action != "create":
            policy = self.reconciled.identifier_policy
            if not conforms_to_policy(info.identifier, policy):
                raise ChangeSetValidationError(
                    PLACEMENT,
                    path,
                    f"new identifier {info.identifier!r} does not follow the "
                    f"{policy} identifier policy",
                )
        if info.kind == ArtifactKind.NODE and info.version != INITIAL_VERSION:
            raise ChangeSetValidationError(
                PLACEMENT,
                path,
                f"new node {info.identifier!r} must start at version {INITIAL_VERSION}, "
                f"got {info.version}",
            )

    def _place_embedded(self, info: PathInfo, path: str, workflows_in_set: set[str]) -> None:
        parent = self.reconciled.index.get(info.workflow or "", ArtifactKind.WORKFLOW)
        parent_known = parent is not None
        if info.workflow not in workflows_in_set and not parent_known:
            raise ChangeSetValidationError(
                PLACEMENT,
                path,
                f"embedded node {info.identifier!r} belongs to workflow {info.workflow!r}, "
                "which is neither in this change set nor an existing workflow",
            )
        if self._embedded_is_new(info):
            policy = self.reconciled.identifier_policy
            if not conforms_to_policy(info.identifier, policy):
                raise ChangeSetValidationError(
                    PLACEMENT,
                    path,
                    f"new embedded node identifier {info.identifier!r} does not follow the "
                    f"{policy} identifier policy",
                )

    def _embedded_is_new(self, info: PathInfo) -> bool:
        if info.identifier in self.reconciled.labels:
            return False
        prefix = info.directory + "/"
        return not any(p.startswith(prefix) for p in self.reconciled.context.existing_files)

    # -- 3. auxiliary ----------------------------------------------------------

    def _is_new_identifier(self, info: PathInfo) -> bool:
        if info.kind == ArtifactKind.EMBEDDED_NODE:
            return self._embedded_is_new(info)
        return (
            info.identifier not in self.reconciled.index
            and info.identifier not in self.reconciled.labels
        )

    def _check_auxiliary(
        self, entries: list[_Entry], groups: dict[tuple, dict[FileRole, PathInfo]]
    ) -> None:
        labels = {e.info.identifier: e for e in entries if e.info.category == "label"}
        for roles in groups.values():
            info = next(iter(roles.values()))
            if self._is_new_identifier(info) and info.identifier not in labels:
                raise ChangeSetValidationError(
                    AUXILIARY,
                    label_path(info.identifier),
                    f"new identifier {info.identifier!r} needs a label entry",
                )
        for identifier, e in labels.items():
            lines = [ln for ln in e.file.content.splitlines() if ln.strip()]
            if len(lines) != 1:
                raise ChangeSetValidationError(
                    AUXILIARY,
                    e.file.path,
                    "label entry must contain exactly one non-empty line",
                )

        manifest = next((e for e in entries if e.info.category == "manifest"), None)
        new_deps: set[str] | None = None
        if manifest is not None:
            try:
                data = json.loads(manifest.file.content)
            except json.JSONDecodeError as exc:
                raise ChangeSetValidationError(
                    AUXILIARY, manifest.file.path, f"package.json is not valid JSON: {exc}"
                ) from exc
            if not isinstance(data, dict):
                raise ChangeSetValidationError(
                    AUXILIARY, manifest.file.path, "package.json must be a JSON object"
                )
            new_deps = set()
            for section in ("dependencies", "devDependencies", "peerDependencies"):
                if isinstance(data.get(section), dict):
                    new_deps.update(data[section])

        current = self.reconciled.dependencies
        if current is None and new_deps is None:
            # No manifest known: nothing to compare imports against.
            return
        known = new_deps if new_deps is not None else set(current)
        for e in entries:
            if e.info.category != "artifact" or e.info.role != FileRole.MAIN:
                continue
            for pkg in imported_packages(e.file.content):
                if pkg in known:
                    continue
                where = "the updated package.json" if new_deps is not None else "package.json"
                raise ChangeSetValidationError(
                    AUXILIARY,
                    e.file.path,
                    f"imports {pkg!r}, which is not declared in {where}; "
                    "include the full updated package.json",
                    rule="dependency-manifest",
                )

    # -- 4. mutation safety ------------------------------------------------------

    def _previous_path(self, info: PathInfo) -> str | None:
        if info.kind == ArtifactKind.NODE:
            existing = self.reconciled.index.get(info.identifier, ArtifactKind.NODE)
            if existing is None:
                return None
            directory = artifact_directory(
                ArtifactKind.NODE, existing.identifier, existing.effective_version
            )
            return f"{directory}/{ROLE_FILENAMES[info.role]}"
        return f"{info.directory}/{ROLE_FILENAMES[info.role]}"

    def _check_mutation_safety(self, entries: list[_Entry]) -> None:
        previous_files = self.reconciled.context.existing_files
        for e in entries:
            if e.info.category != "artifact":
                continue
            old_path = self._previous_path(e.info)
            if old_path is None or old_path not in previous_files:
                continue
            violations = check_mutation(e.info.role, previous_files[old_path], e.file.content)
            if violations:
                v = violations[0]
                raise ChangeSetValidationError(
                    MUTATION_SAFETY, e.file.path, v.message, rule=v.rule
                )
