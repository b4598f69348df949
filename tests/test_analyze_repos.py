"""Tests for the command line entry point."""
from unittest.mock import AsyncMock, MagicMock, patch
import pytest
import analyze_repos
from repo_quality.config import Settings
from repo_quality.infrastructure.json_history_storage import JsonFileHistoryStorage


@pytest.fixture
def environment(tmp_path, monkeypatch):
    """Isolated working directory and a minimal environment."""
    monkeypatch.chdir(tmp_path)
    for name in ("GITHUB_TOKEN", "MIN_QUALITY_SCORE", "CACHE_ENABLED", "HISTORY_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")
    monkeypatch.setenv("CACHE_ENABLED", "false")
    monkeypatch.setenv("HISTORY_BACKEND", "none")
    return monkeypatch


@pytest.fixture
def fake_client(repository_info):
    """GitHub client for an empty repository: metadata only, no files."""
    client = MagicMock()
    client.get_repository_info = AsyncMock(
        side_effect=lambda owner, name: repository_info(owner, name)
    )
    client.find_existing_paths = AsyncMock(return_value=set())
    client.get_file_content = AsyncMock(return_value=None)
    client.get_languages = AsyncMock(return_value={})
    client.get_contributor_count = AsyncMock(return_value=0)
    client.get_star_count = AsyncMock(return_value=0)
    client.close = AsyncMock()
    with patch.object(analyze_repos, "GitHubGraphQLClient", return_value=client):
        yield client


def test_parse_args():
    args = analyze_repos.parse_args(["--trends", "facebook/react", "vercel/next.js"])

    assert args.trends is True
    assert args.repositories == ["facebook/react", "vercel/next.js"]


def test_create_history_storage(tmp_path):
    assert analyze_repos.create_history_storage(Settings(history_backend="none")) is None

    storage = analyze_repos.create_history_storage(
        Settings(history_backend="json", history_dir=str(tmp_path / "history"))
    )

    assert isinstance(storage, JsonFileHistoryStorage)


@pytest.mark.asyncio
async def test_missing_token_fails(environment):
    environment.delenv("GITHUB_TOKEN")

    assert await analyze_repos.main(["facebook/react"]) == 1


@pytest.mark.asyncio
async def test_invalid_configuration_fails(environment):
    environment.setenv("MIN_QUALITY_SCORE", "250")

    assert await analyze_repos.main(["facebook/react"]) == 1


@pytest.mark.asyncio
async def test_score_below_minimum_fails(environment, fake_client):
    """Test an empty repository (overall 34) fails the default minimum of 50."""
    assert await analyze_repos.main(["facebook/react"]) == 1
    fake_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_score_above_minimum_succeeds(environment, fake_client):
    environment.setenv("MIN_QUALITY_SCORE", "20")

    assert await analyze_repos.main(["--trends", "facebook/react"]) == 0


@pytest.mark.asyncio
async def test_batch_with_failure_fails(environment, fake_client):
    environment.setenv("MIN_QUALITY_SCORE", "0")

    assert await analyze_repos.main(["facebook/react", "not a repository"]) == 1
    fake_client.get_repository_info.assert_awaited_once_with("facebook", "react")


@pytest.mark.asyncio
async def test_invalid_reference_fails(environment, fake_client):
    assert await analyze_repos.main(["not a repository"]) == 1
    fake_client.get_repository_info.assert_not_awaited()


@pytest.mark.asyncio
async def test_only_invalid_references_skip_client(environment):
    """Test no GitHub client is created when every reference is rejected."""
    with patch.object(analyze_repos, "GitHubGraphQLClient") as client_type:
        assert await analyze_repos.main(["not a repository", "https://gitlab.com/a/b"]) == 1

    client_type.assert_not_called()
