"""Pydantic models for VCS data."""

from pydantic import BaseModel, Field


class RepoRef(BaseModel):
    """A repository addressed by owner and name."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class RepoInfo(BaseModel):
    """The subset of repository metadata the publisher needs."""

    full_name: str
    default_branch: str = "main"
    url: str = ""


class TreeEntry(BaseModel):
    """One file of a new tree, pointing at an uploaded blob."""

    path: str
    sha: str
    mode: str = "100644"
    type: str = "blob"


class PullRequestResult(BaseModel):
    """Outcome of a successful publish."""

    url: str
    number: int
    branch: str
    base_branch: str
    commit_sha: str
    files: list[str] = Field(default_factory=list)
