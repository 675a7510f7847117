"""Pipeline orchestrator: prompt + repository context -> validated ChangeSet -> PR."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from promptship.config import PromptShipConfig
from promptship.errors import ChangeSetValidationError
from promptship.generation.builder import build_generation_request
from promptship.generation.generator import Generator
from promptship.reconciler.models import ReconciledContext, RepoContext
from promptship.reconciler.reconciler import ContextReconciler
from promptship.validator.models import ChangeSet
from promptship.validator.validator import ChangeSetValidator
from promptship.vcs.models import PullRequestResult
from promptship.vcs.publisher import Publisher

logger = logging.getLogger(__name__)

PreviousFileLoader = Callable[[ReconciledContext], Awaitable[dict[str, str]]]


async def reconcile_with_files(
    reconciler: ContextReconciler,
    prompt: str,
    context: RepoContext | None = None,
    *,
    previous_files: PreviousFileLoader | None = None,
) -> ReconciledContext:
    """Reconcile, then merge in current file contents for updated artifacts."""
    reconciled = reconciler.reconcile(prompt, context)
    if previous_files is None:
        return reconciled
    files = await previous_files(reconciled)
    if not files:
        return reconciled
    merged = {**reconciled.context.existing_files, **files}
    ctx = reconciled.context.model_copy(update={"existing_files": merged})
    return reconciled.model_copy(update={"context": ctx})


class PromptPipeline:
    """Runs one request end to end.

    Pipeline:
        RepoContext -> ContextReconciler -> GenerationRequest -> Generator
        -> ChangeSetValidator (one retry with feedback) -> Publisher
    """

    def __init__(self, generator: Generator, config: PromptShipConfig | None = None) -> None:
        self.generator = generator
        self.config = config or PromptShipConfig()
        self.reconciler = ContextReconciler(self.config.policy)

    async def prepare(
        self,
        prompt: str,
        context: RepoContext | None = None,
        *,
        previous_files: PreviousFileLoader | None = None,
    ) -> ChangeSet:
        """Reconcile, generate and validate; nothing remote is written."""
        reconciled = await reconcile_with_files(
            self.reconciler, prompt, context, previous_files=previous_files
        )
        return await self.generate(reconciled, prompt)

    async def generate(self, reconciled: ReconciledContext, prompt: str) -> ChangeSet:
        validator = ChangeSetValidator(reconciled, self.config.pr)
        feedback: str | None = None
        retries_left = self.config.policy.max_feedback_retries

        while True:
            request = build_generation_request(reconciled, prompt, feedback=feedback)
            result = await self.generator(request)
            try:
                return validator.validate(result)
            except ChangeSetValidationError as e:
                if retries_left <= 0:
                    raise
                retries_left -= 1
                feedback = e.feedback()
                logger.warning("Generated files rejected (%s); retrying with feedback", e)

    async def run(
        self,
        repo: str,
        prompt: str,
        context: RepoContext | None,
        publisher: Publisher,
        *,
        previous_files: PreviousFileLoader | None = None,
    ) -> PullRequestResult:
        changeset = await self.prepare(prompt, context, previous_files=previous_files)
        return await publisher.publish(repo, changeset)
