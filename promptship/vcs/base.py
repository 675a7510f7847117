"""Abstract VCS interface for promptship."""

from abc import ABC, abstractmethod

from promptship.reconciler.models import ReconciledContext, RepoContext
from promptship.vcs.models import RepoInfo, TreeEntry


class VCSProvider(ABC):
    """Abstract base class for VCS providers.

    Defines the git-data operations the Publisher drives, one per phase,
    plus the read side used to assemble repository context. Operations
    raise the backend's own exceptions; the Publisher maps them to phases.
    """

    @abstractmethod
    async def get_repo_info(self, repo: str) -> RepoInfo:
        """Get repository metadata, including its default branch.

        Args:
            repo: Repository identifier in "owner/repo" format.
        """
        ...

    @abstractmethod
    async def get_branch_sha(self, repo: str, branch: str) -> str:
        """Commit SHA a branch currently points at."""
        ...

    @abstractmethod
    async def create_branch(self, repo: str, branch: str, sha: str) -> None:
        ...

    @abstractmethod
    async def create_blob(self, repo: str, content: str) -> str:
        """Upload UTF-8 file content and return the blob SHA."""
        ...

    @abstractmethod
    async def create_tree(self, repo: str, base_sha: str, entries: list[TreeEntry]) -> str:
        """Create a tree layered over the tree of commit ``base_sha``; return its SHA."""
        ...

    @abstractmethod
    async def create_commit(self, repo: str, message: str, tree_sha: str, parent_sha: str) -> str:
        ...

    @abstractmethod
    async def update_branch(self, repo: str, branch: str, sha: str) -> None:
        ...

    @abstractmethod
    async def create_pull_request(
        self, repo: str, title: str, body: str, head: str, base: str
    ) -> tuple[str, int]:
        """Open a pull request; returns (html url, number)."""
        ...

    @abstractmethod
    async def check_repo_access(self, repo: str) -> bool:
        """True when the repository is reachable with the current credentials."""
        ...

    @abstractmethod
    async def get_file_content(self, repo: str, path: str) -> str | None:
        """Decoded text of a file on the default branch, or None if unavailable."""
        ...

    @abstractmethod
    async def load_context(self, repo: str) -> RepoContext:
        """Assemble a RepoContext snapshot from the repository's default branch."""
        ...

    @abstractmethod
    async def fetch_previous_files(
        self, repo: str, reconciled: ReconciledContext
    ) -> dict[str, str]:
        """Current content of every file belonging to artifacts being updated."""
        ...
