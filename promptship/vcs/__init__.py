"""VCS providers and the transactional publisher."""

import os

from promptship.config.models import VCSConfig
from promptship.vcs.base import VCSProvider
from promptship.vcs.github import GitHubProvider, parse_repo_url
from promptship.vcs.models import PullRequestResult, RepoInfo, RepoRef, TreeEntry
from promptship.vcs.publisher import Publisher, PublishPhase, branch_name


def create_provider(config: VCSConfig) -> VCSProvider:
    """Create a VCS provider from config.

    Resolves the token from the environment variable named in config.token_env.
    """
    if config.provider != "github":
        raise ValueError(
            f"Unsupported VCS provider: {config.provider!r}. "
            "Currently only 'github' is supported."
        )
    token = os.environ.get(config.token_env, "")
    if not token:
        raise ValueError(
            f"VCS token not found. Set the {config.token_env} environment variable."
        )
    return GitHubProvider(token=token, base_url=config.base_url)


__all__ = [
    "GitHubProvider",
    "PublishPhase",
    "Publisher",
    "PullRequestResult",
    "RepoInfo",
    "RepoRef",
    "TreeEntry",
    "VCSProvider",
    "branch_name",
    "create_provider",
    "parse_repo_url",
]
