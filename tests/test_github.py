"""Tests for promptship.vcs.github: PyGithub calls behind each provider method."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest
from github import GithubException

from promptship.config.models import VCSConfig
from promptship.reconciler import ContextReconciler, RepoContext
from promptship.vcs import create_provider
from promptship.vcs.github import GitHubProvider, parse_repo_url
from promptship.vcs.models import TreeEntry


# ── parse_repo_url ──────────────────────────────────────────────────


class TestParseRepoUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/acme/flows",
            "https://github.com/acme/flows/",
            "https://github.com/acme/flows.git",
            "git@github.com:acme/flows.git",
            "acme/flows",
            "  acme/flows  ",
        ],
    )
    def test_forms(self, url):
        ref = parse_repo_url(url)
        assert ref.full_name == "acme/flows"
        assert str(ref) == "acme/flows"

    def test_owner_named_like_host(self):
        assert parse_repo_url("https://github.com/github/docs").full_name == "github/docs"

    @pytest.mark.parametrize("url", ["", "flows", "https://"])
    def test_too_short(self, url):
        assert parse_repo_url(url) is None


# ── construction ────────────────────────────────────────────────────


class TestConstruction:
    @patch.dict(os.environ, {}, clear=True)
    def test_requires_token(self):
        with pytest.raises(ValueError, match="GitHub token required"):
            GitHubProvider()

    @patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_env"})
    def test_token_from_env(self):
        assert GitHubProvider()._token == "ghp_env"

    @patch.dict(os.environ, {"GH_ENTERPRISE": "tok"}, clear=True)
    def test_create_provider_uses_config(self):
        provider = create_provider(
            VCSConfig(token_env="GH_ENTERPRISE", base_url="https://ghe.example.com/api/v3")
        )
        assert isinstance(provider, GitHubProvider)
        assert provider._base_url == "https://ghe.example.com/api/v3"

    @patch.dict(os.environ, {}, clear=True)
    def test_create_provider_missing_token(self):
        with pytest.raises(ValueError, match="GITHUB_TOKEN"):
            create_provider(VCSConfig())


# ── provider methods ────────────────────────────────────────────────


def _blob(path):
    return MagicMock(path=path, type="blob")


def _contents(text):
    return MagicMock(decoded_content=text.encode("utf-8"))


@pytest.fixture
def repo():
    r = MagicMock()
    r.full_name = "acme/flows"
    r.default_branch = "main"
    r.html_url = "https://github.com/acme/flows"
    return r


@pytest.fixture
def provider(repo):
    with patch("promptship.vcs.github.Github") as github_cls:
        github_cls.return_value.get_repo.return_value = repo
        yield GitHubProvider(token="ghp_test")


class TestWriteSide:
    async def test_repo_info(self, provider, repo):
        info = await provider.get_repo_info("acme/flows")
        assert info.full_name == "acme/flows"
        assert info.default_branch == "main"

    async def test_repo_info_without_default_branch(self, provider, repo):
        repo.default_branch = None
        assert (await provider.get_repo_info("acme/flows")).default_branch == "main"

    async def test_branch_sha(self, provider, repo):
        repo.get_git_ref.return_value.object.sha = "abc"
        assert await provider.get_branch_sha("acme/flows", "main") == "abc"
        repo.get_git_ref.assert_called_once_with("heads/main")

    async def test_create_branch(self, provider, repo):
        await provider.create_branch("acme/flows", "ai-buildship/x-1", "abc")
        repo.create_git_ref.assert_called_once_with(ref="refs/heads/ai-buildship/x-1", sha="abc")

    async def test_create_blob(self, provider, repo):
        repo.create_git_blob.return_value.sha = "blob1"
        assert await provider.create_blob("acme/flows", "hello") == "blob1"
        repo.create_git_blob.assert_called_once_with("hello", "utf-8")

    async def test_create_tree_on_base(self, provider, repo):
        repo.create_git_tree.return_value.sha = "tree1"
        sha = await provider.create_tree(
            "acme/flows", "base", [TreeEntry(path="package.json", sha="blob1")]
        )
        assert sha == "tree1"
        repo.get_git_commit.assert_called_once_with("base")
        elements, base_tree = repo.create_git_tree.call_args.args
        assert len(elements) == 1
        assert base_tree is repo.get_git_commit.return_value.tree

    async def test_create_commit(self, provider, repo):
        repo.create_git_commit.return_value.sha = "c1"
        assert await provider.create_commit("acme/flows", "msg", "tree1", "base") == "c1"
        message, tree, parents = repo.create_git_commit.call_args.args
        assert message == "msg"
        assert tree is repo.get_git_tree.return_value
        assert parents == [repo.get_git_commit.return_value]

    async def test_update_branch_forces_ref(self, provider, repo):
        await provider.update_branch("acme/flows", "feature", "c1")
        repo.get_git_ref.assert_called_once_with("heads/feature")
        repo.get_git_ref.return_value.edit.assert_called_once_with("c1", force=True)

    async def test_create_pull_request(self, provider, repo):
        repo.create_pull.return_value = MagicMock(html_url="https://x/pull/3", number=3)
        assert await provider.create_pull_request("acme/flows", "t", "b", "h", "main") == (
            "https://x/pull/3",
            3,
        )
        repo.create_pull.assert_called_once_with(title="t", body="b", head="h", base="main")

    async def test_errors_propagate(self, provider, repo):
        repo.create_git_blob.side_effect = GithubException(403, {"message": "Forbidden"}, None)
        with pytest.raises(GithubException):
            await provider.create_blob("acme/flows", "x")


class TestReadSide:
    async def test_check_repo_access(self, provider):
        assert await provider.check_repo_access("acme/flows")
        provider._client.get_repo.side_effect = GithubException(404, {"message": "Not Found"}, None)
        assert not await provider.check_repo_access("acme/missing")

    async def test_file_content(self, provider, repo):
        repo.get_contents.return_value = _contents("hi")
        assert await provider.get_file_content("acme/flows", "README.md") == "hi"
        repo.get_contents.assert_called_once_with("README.md", ref="main")

    async def test_missing_file_is_none(self, provider, repo, caplog):
        repo.get_contents.side_effect = GithubException(404, {"message": "Not Found"}, None)
        assert await provider.get_file_content("acme/flows", "nope") is None
        assert "Could not read" not in caplog.text

    async def test_directory_is_none(self, provider, repo):
        repo.get_contents.return_value = [_contents("a")]
        assert await provider.get_file_content("acme/flows", "nodes") is None

    async def test_load_context(self, provider, repo):
        repo.get_git_tree.return_value.tree = [
            _blob("nodes/pdf-parser/1.0.2/main.ts"),
            _blob("nodes/pdf-parser/1.0.2/meta.json"),
            _blob("nodes/pdf-parser/1.0.3/main.ts"),
            _blob("workflows/daily-report/nodes.json"),
            _blob("flow-id-to-label/pdf-parser.txt"),
            _blob("package.json"),
            _blob("README.md"),
            MagicMock(path="nodes", type="tree"),
        ]
        files = {
            "flow-id-to-label/pdf-parser.txt": "PDF Parser\n",
            "package.json": '{"dependencies": {"axios": "1"}}',
        }
        repo.get_contents.side_effect = lambda path, ref: _contents(files[path])

        context = await provider.load_context("acme/flows")

        assert context.existing_nodes == [
            "pdf-parser@1.0.2",
            "pdf-parser@1.0.3",
            "workflow:daily-report",
        ]
        assert json.loads(context.flow_id_mapping) == {"pdf-parser": "PDF Parser"}
        assert context.package_json == files["package.json"]
        assert context.existing_files == {}
        repo.get_git_tree.assert_called_once_with("main", recursive=True)

    async def test_empty_repo_context(self, provider, repo):
        repo.get_git_tree.return_value.tree = []
        context = await provider.load_context("acme/flows")
        assert context.package_json is None
        assert context.flow_id_mapping is None
        assert context.existing_nodes == []

    async def test_fetch_previous_files(self, provider, repo):
        repo.get_git_tree.return_value.tree = [
            _blob("nodes/pdf-parser/1.0.2/main.ts"),
            _blob("nodes/pdf-parser/1.0.2/output.json"),
            _blob("nodes/pdf-parser/1.0.1/main.ts"),
            _blob("nodes/other/1.0.0/main.ts"),
        ]
        repo.get_contents.side_effect = lambda path, ref: _contents(f"content of {path}")
        reconciled = ContextReconciler().reconcile(
            "Tweak the pdf parser", _context(["pdf-parser@1.0.2", "other@1.0.0"])
        )

        files = await provider.fetch_previous_files("acme/flows", reconciled)

        assert sorted(files) == [
            "nodes/pdf-parser/1.0.2/main.ts",
            "nodes/pdf-parser/1.0.2/output.json",
        ]

    async def test_fetch_previous_files_for_new_artifact(self, provider, repo):
        reconciled = ContextReconciler().reconcile("Create a node that echoes", _context([]))
        assert await provider.fetch_previous_files("acme/flows", reconciled) == {}
        repo.get_git_tree.assert_not_called()


def _context(entries):
    return RepoContext(existing_nodes=entries)
