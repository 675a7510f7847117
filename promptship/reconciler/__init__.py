"""Context reconciliation: existing-artifact index and NEW/UPDATE decisions."""

from promptship.reconciler.index import (
    ExistingArtifactIndex,
    IndexedArtifact,
    parse_label_mapping,
    parse_manifest,
)
from promptship.reconciler.models import ArtifactPlan, ReconciledContext, RepoContext
from promptship.reconciler.reconciler import ContextReconciler, derive_label

__all__ = [
    "ArtifactPlan",
    "ContextReconciler",
    "ExistingArtifactIndex",
    "IndexedArtifact",
    "ReconciledContext",
    "RepoContext",
    "derive_label",
    "parse_label_mapping",
    "parse_manifest",
]
