"""Tests for promptship.vcs.publisher: phase ordering and failure reporting."""

import re

import pytest
from unittest.mock import AsyncMock

from github import GithubException

from promptship.config.models import VCSConfig
from promptship.errors import RemoteTransactionError
from promptship.validator.models import ChangeSet, GeneratedFile
from promptship.vcs.models import RepoInfo, TreeEntry
from promptship.vcs.publisher import Publisher, branch_name, describe_failure


@pytest.fixture
def changeset():
    files = (
        GeneratedFile(path="nodes/pdf-parser/1.0.3/main.ts", content="export default 1;"),
        GeneratedFile(path="nodes/pdf-parser/1.0.3/meta.json", content="{}"),
        GeneratedFile(path="package.json", content='{"dependencies": {}}'),
    )
    return ChangeSet(
        files=files,
        title="BuildShip AI: Improve PDF parser errors",
        summary="Improve PDF parser errors",
        body="Improve PDF parser errors\n",
    )


def _called_phases(provider):
    order = [
        "get_repo_info",
        "get_branch_sha",
        "create_branch",
        "create_blob",
        "create_tree",
        "create_commit",
        "update_branch",
        "create_pull_request",
    ]
    return [name for name in order if getattr(provider, name).await_count]


# ── branch names ────────────────────────────────────────────────────


class TestBranchName:
    def test_prefix_is_stripped_and_slugged(self):
        name = branch_name("BuildShip AI: Improve PDF parser errors", now_ms=1717171234567)
        assert name == "ai-buildship/improve-pdf-parser-errors-234567"

    def test_empty_slug_falls_back(self):
        assert branch_name("BuildShip AI: !!!", now_ms=123456789).endswith("/update-456789")

    def test_slug_length_and_prefix_from_config(self):
        config = VCSConfig(branch_prefix="bot/", branch_slug_max_length=10)
        name = branch_name("a very long title for a branch", config, now_ms=1)
        slug = name[len("bot/"):].rsplit("-", 1)[0]
        assert name.startswith("bot/")
        assert len(slug) <= 10

    def test_fresh_name_per_attempt(self):
        first = branch_name("x", now_ms=1000001)
        second = branch_name("x", now_ms=1000002)
        assert first != second

    def test_uses_clock_by_default(self):
        assert re.fullmatch(r"ai-buildship/fix-\d{6}", branch_name("Fix"))


# ── successful publish ──────────────────────────────────────────────


class TestPublish:
    async def test_runs_every_phase_in_order(self, mock_vcs_provider, changeset):
        result = await Publisher(mock_vcs_provider).publish("acme/flows", changeset)

        assert _called_phases(mock_vcs_provider) == [
            "get_repo_info",
            "get_branch_sha",
            "create_branch",
            "create_blob",
            "create_tree",
            "create_commit",
            "update_branch",
            "create_pull_request",
        ]
        assert result.url == "https://github.com/acme/flows/pull/7"
        assert result.number == 7
        assert result.base_branch == "main"
        assert result.commit_sha == "commit789"
        assert result.files == changeset.paths
        assert result.branch.startswith("ai-buildship/improve-pdf-parser-errors-")

    async def test_wiring_between_phases(self, mock_vcs_provider, changeset):
        result = await Publisher(mock_vcs_provider).publish("acme/flows", changeset)
        p = mock_vcs_provider

        p.get_branch_sha.assert_awaited_once_with("acme/flows", "main")
        p.create_branch.assert_awaited_once_with("acme/flows", result.branch, "base123")
        assert p.create_blob.await_count == 3
        p.create_tree.assert_awaited_once_with(
            "acme/flows",
            "base123",
            [
                TreeEntry(path="nodes/pdf-parser/1.0.3/main.ts", sha="blob-17"),
                TreeEntry(path="nodes/pdf-parser/1.0.3/meta.json", sha="blob-2"),
                TreeEntry(path="package.json", sha="blob-20"),
            ],
        )
        p.create_commit.assert_awaited_once_with(
            "acme/flows", changeset.title, "tree456", "base123"
        )
        p.update_branch.assert_awaited_once_with("acme/flows", result.branch, "commit789")
        p.create_pull_request.assert_awaited_once_with(
            "acme/flows", changeset.title, changeset.body, result.branch, "main"
        )

    async def test_missing_default_branch_falls_back_to_main(self, mock_vcs_provider, changeset):
        mock_vcs_provider.get_repo_info.return_value = RepoInfo(
            full_name="acme/flows", default_branch=""
        )
        result = await Publisher(mock_vcs_provider).publish("acme/flows", changeset)
        assert result.base_branch == "main"

    async def test_custom_base_branch(self, mock_vcs_provider, changeset):
        mock_vcs_provider.get_repo_info.return_value = RepoInfo(
            full_name="acme/flows", default_branch="develop"
        )
        result = await Publisher(mock_vcs_provider).publish("acme/flows", changeset)
        assert result.base_branch == "develop"
        mock_vcs_provider.get_branch_sha.assert_awaited_once_with("acme/flows", "develop")


# ── failures ────────────────────────────────────────────────────────


class TestPublishFailures:
    async def test_tree_failure_stops_later_phases(self, mock_vcs_provider, changeset):
        mock_vcs_provider.create_tree.side_effect = GithubException(
            422, {"message": "Validation Failed", "errors": [{"code": "invalid"}]}, None
        )
        with pytest.raises(RemoteTransactionError) as exc_info:
            await Publisher(mock_vcs_provider).publish("acme/flows", changeset)

        error = exc_info.value
        assert error.phase == "Create Tree"
        assert error.status == 422
        assert str(error) == 'Create Tree failed: Validation Failed - [{"code": "invalid"}]'
        assert _called_phases(mock_vcs_provider)[-1] == "create_tree"
        mock_vcs_provider.create_commit.assert_not_awaited()
        mock_vcs_provider.create_pull_request.assert_not_awaited()

    async def test_base_ref_failure_names_branch(self, mock_vcs_provider, changeset):
        mock_vcs_provider.get_branch_sha.side_effect = GithubException(
            404, {"message": "Not Found"}, None
        )
        with pytest.raises(RemoteTransactionError, match="^Get ref main failed: Not Found$"):
            await Publisher(mock_vcs_provider).publish("acme/flows", changeset)
        mock_vcs_provider.create_branch.assert_not_awaited()

    async def test_blob_failure_names_file(self, mock_vcs_provider, changeset):
        async def _create_blob(repo, content):
            if content == "{}":
                raise ConnectionResetError("connection reset by peer")
            return "sha"

        mock_vcs_provider.create_blob = AsyncMock(side_effect=_create_blob)
        with pytest.raises(RemoteTransactionError) as exc_info:
            await Publisher(mock_vcs_provider).publish("acme/flows", changeset)

        assert exc_info.value.phase == "Create Blob (nodes/pdf-parser/1.0.3/meta.json)"
        assert "connection reset by peer" in str(exc_info.value)
        mock_vcs_provider.create_tree.assert_not_awaited()

    async def test_pr_failure_after_branch_exists(self, mock_vcs_provider, changeset):
        mock_vcs_provider.create_pull_request.side_effect = GithubException(
            422, {"message": "A pull request already exists"}, None
        )
        with pytest.raises(RemoteTransactionError, match="^Create PR failed"):
            await Publisher(mock_vcs_provider).publish("acme/flows", changeset)
        mock_vcs_provider.update_branch.assert_awaited_once()

    async def test_unexpected_errors_propagate_unwrapped(self, mock_vcs_provider, changeset):
        mock_vcs_provider.create_commit.side_effect = KeyError("sha")
        with pytest.raises(KeyError):
            await Publisher(mock_vcs_provider).publish("acme/flows", changeset)


class TestDescribeFailure:
    def test_github_data_without_message(self):
        detail, status = describe_failure(GithubException(500, {"documentation_url": "x"}, None))
        assert detail == '{"documentation_url": "x"}'
        assert status == 500

    def test_plain_exception(self):
        assert describe_failure(TimeoutError("timed out")) == ("timed out", None)
