"""GitHub VCS provider using PyGithub."""

import asyncio
import json
import logging
import os
import re
from functools import cached_property

from github import Auth, Github, GithubException, InputGitTreeElement
from github.Repository import Repository

from promptship.reconciler.models import ReconciledContext, RepoContext
from promptship.schema.layout import (
    LABELS_DIR,
    MANIFEST_PATH,
    NODES_DIR,
    WORKFLOWS_DIR,
    classify_path,
)
from promptship.vcs.base import VCSProvider
from promptship.vcs.models import RepoInfo, RepoRef, TreeEntry

logger = logging.getLogger(__name__)

_SSH_PREFIX_RE = re.compile(r"^git@[^:/]+:")


def parse_repo_url(url: str) -> RepoRef | None:
    """Parse 'https://github.com/owner/repo', 'owner/repo' and friends.

    Takes the last two path segments; a trailing slash or '.git' is ignored.
    Returns None when fewer than two segments remain.
    """
    clean = url.strip().rstrip("/")
    if clean.endswith(".git"):
        clean = clean[: -len(".git")]
    clean = _SSH_PREFIX_RE.sub("", clean)
    parts = [p for p in clean.split("/") if p]
    if len(parts) < 2:
        return None
    return RepoRef(owner=parts[-2], name=parts[-1])


class GitHubProvider(VCSProvider):
    """GitHub implementation of VCSProvider using PyGithub.

    PyGithub is synchronous, so all blocking calls are wrapped
    with asyncio.to_thread() to avoid blocking the event loop.
    """

    def __init__(self, token: str | None = None, base_url: str | None = None):
        self._token = token or os.environ.get("GITHUB_TOKEN", "")
        if not self._token:
            raise ValueError(
                "GitHub token required. Pass token= or set GITHUB_TOKEN env var."
            )
        self._base_url = base_url

    @cached_property
    def _client(self) -> Github:
        auth = Auth.Token(self._token)
        if self._base_url:
            return Github(auth=auth, base_url=self._base_url)
        return Github(auth=auth)

    def _get_repo(self, repo_id: str) -> Repository:
        """Get a PyGithub Repository object by 'owner/repo' identifier."""
        return self._client.get_repo(repo_id)

    # -- write side: one method per publish phase -----------------------------

    async def get_repo_info(self, repo: str) -> RepoInfo:
        def _sync() -> RepoInfo:
            r = self._get_repo(repo)
            return RepoInfo(
                full_name=r.full_name,
                default_branch=r.default_branch or "main",
                url=r.html_url or "",
            )

        return await asyncio.to_thread(_sync)

    async def get_branch_sha(self, repo: str, branch: str) -> str:
        def _sync() -> str:
            ref = self._get_repo(repo).get_git_ref(f"heads/{branch}")
            return ref.object.sha

        return await asyncio.to_thread(_sync)

    async def create_branch(self, repo: str, branch: str, sha: str) -> None:
        def _sync() -> None:
            self._get_repo(repo).create_git_ref(ref=f"refs/heads/{branch}", sha=sha)

        await asyncio.to_thread(_sync)

    async def create_blob(self, repo: str, content: str) -> str:
        def _sync() -> str:
            return self._get_repo(repo).create_git_blob(content, "utf-8").sha

        return await asyncio.to_thread(_sync)

    async def create_tree(self, repo: str, base_sha: str, entries: list[TreeEntry]) -> str:
        def _sync() -> str:
            r = self._get_repo(repo)
            base_tree = r.get_git_commit(base_sha).tree
            elements = [
                InputGitTreeElement(path=e.path, mode=e.mode, type=e.type, sha=e.sha)
                for e in entries
            ]
            return r.create_git_tree(elements, base_tree).sha

        return await asyncio.to_thread(_sync)

    async def create_commit(self, repo: str, message: str, tree_sha: str, parent_sha: str) -> str:
        def _sync() -> str:
            r = self._get_repo(repo)
            tree = r.get_git_tree(tree_sha)
            parent = r.get_git_commit(parent_sha)
            return r.create_git_commit(message, tree, [parent]).sha

        return await asyncio.to_thread(_sync)

    async def update_branch(self, repo: str, branch: str, sha: str) -> None:
        def _sync() -> None:
            self._get_repo(repo).get_git_ref(f"heads/{branch}").edit(sha, force=True)

        await asyncio.to_thread(_sync)

    async def create_pull_request(
        self, repo: str, title: str, body: str, head: str, base: str
    ) -> tuple[str, int]:
        def _sync() -> tuple[str, int]:
            pr = self._get_repo(repo).create_pull(title=title, body=body, head=head, base=base)
            return pr.html_url, pr.number

        return await asyncio.to_thread(_sync)

    # -- read side --------------------------------------------------------------

    async def check_repo_access(self, repo: str) -> bool:
        def _sync() -> bool:
            try:
                self._get_repo(repo)
            except (GithubException, OSError) as e:
                logger.debug("Repository %s not accessible: %s", repo, e)
                return False
            return True

        return await asyncio.to_thread(_sync)

    def _read_file(self, r: Repository, path: str, ref: str) -> str | None:
        try:
            content = r.get_contents(path, ref=ref)
        except GithubException as e:
            if e.status != 404:
                logger.warning("Could not read %s: %s", path, e)
            return None
        if isinstance(content, list):
            return None
        return content.decoded_content.decode("utf-8")

    async def get_file_content(self, repo: str, path: str) -> str | None:
        def _sync() -> str | None:
            r = self._get_repo(repo)
            return self._read_file(r, path, r.default_branch)

        return await asyncio.to_thread(_sync)

    def _list_blobs(self, r: Repository) -> list[str]:
        tree = r.get_git_tree(r.default_branch, recursive=True)
        return [el.path for el in tree.tree if el.type == "blob"]

    async def load_context(self, repo: str) -> RepoContext:
        """Snapshot of manifest, label entries and artifact index.

        Previous file contents are not included; see fetch_previous_files.
        """

        def _sync() -> RepoContext:
            r = self._get_repo(repo)
            branch = r.default_branch
            paths = self._list_blobs(r)

            entries: list[str] = []
            labels: dict[str, str] = {}
            for path in paths:
                parts = path.split("/")
                if parts[0] == NODES_DIR and len(parts) >= 4:
                    entry = f"{parts[1]}@{parts[2]}"
                elif parts[0] == WORKFLOWS_DIR and len(parts) >= 3:
                    entry = f"workflow:{parts[1]}"
                elif parts[0] == LABELS_DIR and len(parts) == 2 and path.endswith(".txt"):
                    label = self._read_file(r, path, branch)
                    if label and label.strip():
                        labels[parts[1][: -len(".txt")]] = label.strip().splitlines()[0]
                    continue
                else:
                    continue
                if entry not in entries:
                    entries.append(entry)

            package_json = None
            if MANIFEST_PATH in paths:
                package_json = self._read_file(r, MANIFEST_PATH, branch)

            logger.info(
                "Loaded context for %s: %d artifacts, %d labels, manifest=%s",
                repo, len(entries), len(labels), package_json is not None,
            )
            return RepoContext(
                package_json=package_json,
                flow_id_mapping=json.dumps(labels) if labels else None,
                existing_nodes=entries,
            )

        return await asyncio.to_thread(_sync)

    async def fetch_previous_files(
        self, repo: str, reconciled: ReconciledContext
    ) -> dict[str, str]:
        directories = [
            plan.previous_directory + "/"
            for plan in reconciled.targets
            if plan.previous_directory is not None
        ]
        if not directories:
            return {}

        def _sync() -> dict[str, str]:
            r = self._get_repo(repo)
            branch = r.default_branch
            files: dict[str, str] = {}
            for path in self._list_blobs(r):
                if not path.startswith(tuple(directories)):
                    continue
                info = classify_path(path)
                if info is None or info.category != "artifact":
                    continue
                content = self._read_file(r, path, branch)
                if content is not None:
                    files[path] = content
            logger.debug("Fetched %d previous files from %s", len(files), repo)
            return files

        return await asyncio.to_thread(_sync)
