"""Transactional publisher: a validated ChangeSet becomes a branch, a commit and a PR.

Phases run in strict order and the first failure aborts the sequence:

    Fetch Repo Info -> Get Base Ref -> Create Branch -> Create Blob (per file)
    -> Create Tree -> Create Commit -> Update Branch Ref -> Create PR

Blobs are uploaded concurrently; tree creation waits for every one of them.
Nothing is rolled back on failure. A branch left behind by a failed attempt
is never reused: every attempt computes a fresh branch name.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from github import GithubException

from promptship.config.models import VCSConfig
from promptship.errors import RemoteTransactionError
from promptship.schema.layout import slugify
from promptship.validator.models import ChangeSet, GeneratedFile
from promptship.vcs.base import VCSProvider
from promptship.vcs.models import PullRequestResult, TreeEntry

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_FALLBACK = "main"


class PublishPhase(str, Enum):
    FETCH_REPO_INFO = "Fetch Repo Info"
    GET_BASE_REF = "Get ref"
    CREATE_BRANCH = "Create Branch"
    CREATE_BLOB = "Create Blob"
    CREATE_TREE = "Create Tree"
    CREATE_COMMIT = "Create Commit"
    UPDATE_BRANCH_REF = "Update Branch Ref"
    CREATE_PR = "Create PR"


def describe_failure(exc: BaseException) -> tuple[str, int | None]:
    """Upstream message (plus its ``errors`` array) and HTTP status, verbatim."""
    if isinstance(exc, GithubException):
        data = exc.data
        if isinstance(data, dict):
            detail = data.get("message") or json.dumps(data)
            if data.get("errors"):
                detail += f" - {json.dumps(data['errors'])}"
        else:
            detail = str(data) if data else str(exc)
        return detail, exc.status
    return str(exc) or type(exc).__name__, None


@contextmanager
def _phase(name: str) -> Iterator[None]:
    logger.debug("Publish phase: %s", name)
    try:
        yield
    except (GithubException, OSError) as e:
        detail, status = describe_failure(e)
        logger.error("Publish phase %r failed: %s", name, detail)
        raise RemoteTransactionError(name, detail, status=status) from e


def branch_name(
    title: str,
    config: VCSConfig | None = None,
    *,
    title_prefix: str | None = "BuildShip AI",
    now_ms: int | None = None,
) -> str:
    """``<prefix><slug>-<last 6 digits of the ms clock>``."""
    config = config or VCSConfig()
    text = title.lower()
    if title_prefix:
        text = re.sub(rf"^{re.escape(title_prefix.lower())}:?\s*", "", text)
    slug = slugify(text, config.branch_slug_max_length) or "update"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{config.branch_prefix}{slug}-{str(now_ms)[-6:]}"


class Publisher:
    """Drives a VCSProvider through the publish phases for one ChangeSet."""

    def __init__(
        self,
        provider: VCSProvider,
        config: VCSConfig | None = None,
        *,
        title_prefix: str | None = "BuildShip AI",
    ) -> None:
        self.provider = provider
        self.config = config or VCSConfig()
        self.title_prefix = title_prefix

    async def publish(self, repo: str, changeset: ChangeSet) -> PullRequestResult:
        with _phase(PublishPhase.FETCH_REPO_INFO.value):
            info = await self.provider.get_repo_info(repo)
        base_branch = info.default_branch or DEFAULT_BRANCH_FALLBACK
        branch = branch_name(changeset.title, self.config, title_prefix=self.title_prefix)
        logger.info("Publishing %d files to %s on branch %s", len(changeset.files), repo, branch)

        with _phase(f"{PublishPhase.GET_BASE_REF.value} {base_branch}"):
            base_sha = await self.provider.get_branch_sha(repo, base_branch)

        with _phase(PublishPhase.CREATE_BRANCH.value):
            await self.provider.create_branch(repo, branch, base_sha)
        logger.debug("Created branch %s at %s", branch, base_sha)

        entries = await self._upload_blobs(repo, changeset.files)

        with _phase(PublishPhase.CREATE_TREE.value):
            tree_sha = await self.provider.create_tree(repo, base_sha, entries)

        with _phase(PublishPhase.CREATE_COMMIT.value):
            commit_sha = await self.provider.create_commit(
                repo, changeset.title, tree_sha, base_sha
            )

        with _phase(PublishPhase.UPDATE_BRANCH_REF.value):
            await self.provider.update_branch(repo, branch, commit_sha)

        with _phase(PublishPhase.CREATE_PR.value):
            url, number = await self.provider.create_pull_request(
                repo, changeset.title, changeset.body, branch, base_branch
            )

        logger.info("Opened pull request #%d: %s", number, url)
        return PullRequestResult(
            url=url,
            number=number,
            branch=branch,
            base_branch=base_branch,
            commit_sha=commit_sha,
            files=changeset.paths,
        )

    async def _upload_blobs(
        self, repo: str, files: tuple[GeneratedFile, ...]
    ) -> list[TreeEntry]:
        semaphore = asyncio.Semaphore(max(1, self.config.blob_concurrency))

        async def _upload(file: GeneratedFile) -> TreeEntry:
            async with semaphore:
                with _phase(f"{PublishPhase.CREATE_BLOB.value} ({file.path})"):
                    sha = await self.provider.create_blob(repo, file.content)
            return TreeEntry(path=file.path, sha=sha)

        tasks = [asyncio.ensure_future(_upload(f)) for f in files]
        try:
            # Tree creation must not start until every blob exists.
            return list(await asyncio.gather(*tasks))
        except RemoteTransactionError:
            for task in tasks:
                task.cancel()
            raise
