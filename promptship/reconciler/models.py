"""Pydantic models for repository context and reconciliation results."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from promptship.reconciler.index import ExistingArtifactIndex
from promptship.schema.layout import ArtifactKind, IdentifierPolicy, artifact_directory, label_path


class RepoContext(BaseModel):
    """Caller-supplied snapshot of the target repository. Every field is optional."""

    package_json: str | None = None
    flow_id_mapping: str | None = None
    existing_nodes: list[str] = Field(
        default_factory=list,
        description="Entries like 'name', 'name@1.0.2', 'workflow:name' or 'workflows/name'",
    )
    existing_files: dict[str, str] = Field(
        default_factory=dict,
        description="path -> previous content, used for mutation-safety checks",
    )


class ArtifactPlan(BaseModel):
    """What one request intends for one artifact."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    kind: ArtifactKind
    action: Literal["create", "update", "reference"]
    resolved_version: str | None = None
    previous_version: str | None = None
    label: str | None = None

    @property
    def is_new(self) -> bool:
        return self.action == "create"

    @property
    def directory(self) -> str:
        return artifact_directory(self.kind, self.identifier, self.resolved_version)

    @property
    def previous_directory(self) -> str | None:
        if self.action == "create":
            return None
        return artifact_directory(
            self.kind, self.identifier, self.previous_version or self.resolved_version
        )

    @property
    def label_file(self) -> str:
        return label_path(self.identifier)


class ReconciledContext(BaseModel):
    """Everything the builder and validator need to know about one request."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    plans: tuple[ArtifactPlan, ...]
    index: ExistingArtifactIndex
    labels: dict[str, str] = Field(default_factory=dict)
    dependencies: frozenset[str] | None = None
    identifier_policy: IdentifierPolicy = "kebab"
    context: RepoContext = Field(default_factory=RepoContext)

    @property
    def targets(self) -> tuple[ArtifactPlan, ...]:
        """Plans the change set must fully provide (creates and updates)."""
        return tuple(p for p in self.plans if p.action != "reference")

    def plan_for(self, identifier: str, kind: ArtifactKind | None = None) -> ArtifactPlan | None:
        key = identifier.lower()
        for plan in self.plans:
            if plan.identifier.lower() == key and kind in (None, plan.kind):
                return plan
        return None

