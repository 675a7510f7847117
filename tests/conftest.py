"""Shared test fixtures for promptship."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from promptship.config.models import PromptShipConfig
from promptship.generation.models import GenerationResult
from promptship.llm.base import LLMProvider
from promptship.llm.models import LLMConfig, LLMResponse, TokenUsage
from promptship.reconciler.models import RepoContext
from promptship.vcs.base import VCSProvider
from promptship.vcs.models import RepoInfo

from factories import as_existing, node_files, workflow_files


@pytest.fixture
def package_json():
    return json.dumps({"name": "buildship-repo", "dependencies": {"axios": "^1.6.0"}})


@pytest.fixture
def sample_context(package_json):
    """A repository with one global node (pdf-parser@1.0.2) and one workflow."""
    existing = as_existing(node_files("pdf-parser", "1.0.2"))
    existing.update(as_existing(workflow_files("daily-report")))
    return RepoContext(
        package_json=package_json,
        flow_id_mapping=json.dumps({"pdf-parser": "PDF Parser", "daily-report": "Daily Report"}),
        existing_nodes=["pdf-parser@1.0.2", "workflow:daily-report"],
        existing_files=existing,
    )


@pytest.fixture
def empty_context():
    return RepoContext()


@pytest.fixture
def sample_config():
    return PromptShipConfig()


@pytest.fixture
def fake_generator():
    """An async generator stub; set ``.results`` to the GenerationResults to return in order."""

    class _FakeGenerator:
        def __init__(self):
            self.results: list[GenerationResult] = []
            self.requests = []

        async def __call__(self, request):
            self.requests.append(request)
            return self.results.pop(0)

    return _FakeGenerator()


@pytest.fixture
def mock_llm_provider():
    provider = MagicMock(spec=LLMProvider)
    provider.config = LLMConfig(provider="anthropic", model="test-model")
    provider.generate = AsyncMock(
        return_value=LLMResponse(
            content='{"files": [], "summary": "Nothing"}',
            usage=TokenUsage(input_tokens=100, output_tokens=250),
            model="test-model",
        )
    )
    return provider


@pytest.fixture
def mock_vcs_provider():
    """A VCSProvider whose every phase succeeds with predictable SHAs."""
    provider = MagicMock(spec=VCSProvider)
    provider.get_repo_info = AsyncMock(
        return_value=RepoInfo(full_name="acme/flows", default_branch="main")
    )
    provider.get_branch_sha = AsyncMock(return_value="base123")
    provider.create_branch = AsyncMock(return_value=None)
    provider.create_blob = AsyncMock(side_effect=lambda repo, content: f"blob-{len(content)}")
    provider.create_tree = AsyncMock(return_value="tree456")
    provider.create_commit = AsyncMock(return_value="commit789")
    provider.update_branch = AsyncMock(return_value=None)
    provider.create_pull_request = AsyncMock(
        return_value=("https://github.com/acme/flows/pull/7", 7)
    )
    return provider
