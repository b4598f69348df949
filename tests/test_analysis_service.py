"""Tests for the analysis service orchestration."""
import asyncio
from unittest.mock import AsyncMock, MagicMock
import pytest
from repo_quality.application.analysis_service import AnalysisService
from repo_quality.application.history_service import HistoryService
from repo_quality.application.scoring_engine import ScoringEngine
from repo_quality.domain.exceptions import (
    AnalysisFailedError,
    InvalidReferenceError,
    MetadataFetchError,
    ProbeError,
)
from repo_quality.domain.models import (
    FRAGMENT_TYPES,
    AnalysisResult,
    DIMENSIONS,
    DocumentationMetrics,
    RepositoryMetrics,
)
from repo_quality.domain.probe_interface import IMetricProbe
from repo_quality.infrastructure.cache import TwoTierCache


class FakeProbe(IMetricProbe):
    """Probe returning a fixed fragment, or raising, and counting calls."""

    def __init__(self, dimension, fragment=None, error=None):
        self.dimension = dimension
        self.fragment = fragment or FRAGMENT_TYPES[dimension]()
        self.error = error
        self.calls = 0

    async def analyze(self, coordinates):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.fragment

    def default_fragment(self):
        return FRAGMENT_TYPES[self.dimension].default()


def make_probes(**overrides):
    return {dimension: overrides.get(dimension) or FakeProbe(dimension) for dimension in DIMENSIONS}


@pytest.fixture
def github_client(repository_info):
    client = MagicMock()

    async def get_repository_info(owner, name):
        await asyncio.sleep(0)
        return repository_info(owner, name)

    client.get_repository_info = AsyncMock(side_effect=get_repository_info)
    client.close = AsyncMock()
    return client


def build_service(github_client, probes=None, **kwargs):
    probes = probes or make_probes()
    return AnalysisService(
        github_client=github_client,
        probes=list(probes.values()),
        scoring_engine=ScoringEngine(),
        **kwargs
    )


def test_requires_one_probe_per_dimension(github_client):
    probes = make_probes()
    probes.pop("security")

    with pytest.raises(ValueError):
        build_service(github_client, probes)


@pytest.mark.asyncio
async def test_analyze_one_scores_repository(github_client):
    """Test metadata and probe fragments are combined and scored."""
    documentation = DocumentationMetrics(has_readme=True, readme_quality=100, has_license=True)
    probes = make_probes(documentation=FakeProbe("documentation", documentation))
    service = build_service(github_client, probes)

    result = await service.analyze_one("https://github.com/facebook/react")

    assert result.repository.full_name == "facebook/react"
    assert result.metrics.documentation == documentation
    assert result.score.breakdown.documentation == 75
    assert result.score == ScoringEngine().calculate_score(result.metrics)
    assert result.duration_ms >= 0
    assert result.timestamp.tzinfo is not None
    github_client.get_repository_info.assert_awaited_once_with("facebook", "react")
    assert all(probe.calls == 1 for probe in probes.values())


@pytest.mark.asyncio
async def test_analyze_one_uses_cache(github_client):
    """Test a second analysis within the TTL is served without probing."""
    probes = make_probes()
    service = build_service(github_client, probes, cache=TwoTierCache())

    first = await service.analyze_one("facebook/react")
    second = await service.analyze_one("https://github.com/facebook/react.git")

    assert second is first
    assert github_client.get_repository_info.await_count == 1
    assert all(probe.calls == 1 for probe in probes.values())


@pytest.mark.asyncio
async def test_cached_result_survives_new_cache_instance(github_client, tmp_path):
    def disk_cache():
        return TwoTierCache(
            directory=tmp_path, encoder=AnalysisResult.to_dict, decoder=AnalysisResult.from_dict
        )

    first = await build_service(github_client, cache=disk_cache()).analyze_one("facebook/react")

    probes = make_probes()
    second = await build_service(github_client, probes, cache=disk_cache()).analyze_one("facebook/react")

    assert second == first
    assert all(probe.calls == 0 for probe in probes.values())


@pytest.mark.asyncio
async def test_probe_failure_uses_default_fragment(github_client):
    """Test a failing probe contributes defaults instead of failing the analysis."""
    probes = make_probes(
        testing=FakeProbe("testing", error=ProbeError("CI lookup failed")),
        community=FakeProbe("community", error=asyncio.TimeoutError())
    )
    service = build_service(github_client, probes)

    result = await service.analyze_one("facebook/react")

    assert result.metrics.testing == RepositoryMetrics().testing
    assert result.metrics.community == RepositoryMetrics().community
    assert result.score.breakdown.testing == 0


@pytest.mark.asyncio
async def test_metadata_failure_raises(github_client):
    github_client.get_repository_info = AsyncMock(
        side_effect=MetadataFetchError("facebook/react", "Not Found")
    )
    history = HistoryService()
    cache = TwoTierCache()
    service = build_service(github_client, cache=cache, history=history)

    with pytest.raises(AnalysisFailedError) as exc_info:
        await service.analyze_one("facebook/react")

    assert str(exc_info.value).startswith("Analysis failed for facebook/react:")
    assert isinstance(exc_info.value.cause, MetadataFetchError)
    assert history.get_history("facebook", "react") is None
    assert cache.get(TwoTierCache.repository_key("facebook", "react")) is None


@pytest.mark.asyncio
async def test_invalid_reference_raises_before_any_call(github_client):
    service = build_service(github_client)

    with pytest.raises(InvalidReferenceError):
        await service.analyze_one("not a repository")

    github_client.get_repository_info.assert_not_awaited()


@pytest.mark.asyncio
async def test_analysis_recorded_in_history(github_client):
    history = HistoryService()
    service = build_service(github_client, cache=TwoTierCache(), history=history)

    result = await service.analyze_one("facebook/react")
    await service.analyze_one("facebook/react")

    recorded = history.get_history("facebook", "react")
    assert len(recorded.analyses) == 1
    assert recorded.analyses[0].overall_score == result.score.overall
    assert service.history is history


@pytest.mark.asyncio
async def test_analyze_many_truncates_batch(github_client):
    """Test inputs beyond the batch limit are dropped."""
    service = build_service(github_client, max_repos_per_batch=2)

    batch = await service.analyze_many(["a/one", "b/two", "c/three", "d/four"])

    assert batch.total == 2
    assert batch.completed == 2
    assert [r.repository.full_name for r in batch.results] == ["a/one", "b/two"]


@pytest.mark.asyncio
async def test_analyze_many_isolates_failures(github_client):
    """Test one failing repository does not affect the others."""
    batch = await build_service(github_client).analyze_many(
        ["facebook/react", "not a repository", "vercel/next.js"]
    )

    assert batch.total == 3
    assert batch.completed == 2
    assert batch.failed == 1
    assert batch.completed + batch.failed == batch.total
    assert batch.errors[0].repository == "not a repository"
    assert batch.errors[0].error == "Invalid repository format: not a repository"


@pytest.mark.asyncio
async def test_analyze_many_records_metadata_errors(github_client, repository_info):
    async def get_repository_info(owner, name):
        if name == "missing":
            raise MetadataFetchError(f"{owner}/{name}", "Not Found")
        return repository_info(owner, name)

    github_client.get_repository_info = AsyncMock(side_effect=get_repository_info)

    batch = await build_service(github_client).analyze_many(["facebook/react", "ghost/missing"])

    assert batch.completed == 1
    assert batch.failed == 1
    assert "Analysis failed for ghost/missing" in batch.errors[0].error


@pytest.mark.asyncio
async def test_analyze_many_respects_concurrency(github_client, repository_info):
    """Test no more than `concurrency` analyses run at the same time."""
    active = 0
    peak = 0

    async def get_repository_info(owner, name):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return repository_info(owner, name)

    github_client.get_repository_info = AsyncMock(side_effect=get_repository_info)
    service = build_service(github_client, concurrency=3, max_repos_per_batch=10)

    batch = await service.analyze_many([f"owner/repo{i}" for i in range(7)])

    assert batch.completed == 7
    assert peak == 3
    assert [r.repository.name for r in batch.results] == [f"repo{i}" for i in range(7)]


@pytest.mark.asyncio
async def test_analyze_many_finishes_window_before_next(github_client, repository_info):
    """Test a slow repository holds back the next window."""
    events = []

    async def get_repository_info(owner, name):
        events.append(("start", name))
        await asyncio.sleep(0.05 if name == "repo0" else 0)
        events.append(("end", name))
        return repository_info(owner, name)

    github_client.get_repository_info = AsyncMock(side_effect=get_repository_info)
    service = build_service(github_client, concurrency=2)

    batch = await service.analyze_many([f"owner/repo{i}" for i in range(4)])

    assert batch.completed == 4
    assert events.index(("start", "repo2")) > events.index(("end", "repo0"))
    assert events.index(("start", "repo3")) > events.index(("end", "repo0"))


@pytest.mark.asyncio
async def test_probes_run_concurrently(github_client):
    """Test all six probes of one repository are in flight at once."""
    counter = {"active": 0, "peak": 0}

    class CountingProbe(FakeProbe):
        async def analyze(self, coordinates):
            counter["active"] += 1
            counter["peak"] = max(counter["peak"], counter["active"])
            await asyncio.sleep(0.01)
            counter["active"] -= 1
            return self.fragment

    probes = {dimension: CountingProbe(dimension) for dimension in DIMENSIONS}
    service = build_service(github_client, probes)

    await service.analyze_one("facebook/react")

    assert counter["peak"] == len(DIMENSIONS)


@pytest.mark.asyncio
async def test_duplicate_references_share_one_analysis(github_client):
    """Test concurrent requests for one repository run a single analysis."""
    probes = make_probes()
    history = HistoryService()
    service = build_service(github_client, probes, cache=TwoTierCache(), history=history)

    batch = await service.analyze_many(
        ["facebook/react", "https://github.com/facebook/react", "Facebook/React"]
    )

    assert batch.completed == 3
    assert batch.results[0] is batch.results[1] is batch.results[2]
    github_client.get_repository_info.assert_awaited_once_with("facebook", "react")
    assert all(probe.calls == 1 for probe in probes.values())
    assert len(history.get_history("facebook", "react").analyses) == 1


@pytest.mark.asyncio
async def test_duplicate_references_share_failure(github_client):
    github_client.get_repository_info = AsyncMock(
        side_effect=MetadataFetchError("facebook/react", "Not Found")
    )
    service = build_service(github_client)

    batch = await service.analyze_many(["facebook/react", "facebook/react"])

    assert batch.failed == 2
    assert github_client.get_repository_info.await_count == 1


@pytest.mark.asyncio
async def test_cache_lookup_ignores_case(github_client):
    probes = make_probes()
    service = build_service(github_client, probes, cache=TwoTierCache())

    first = await service.analyze_one("facebook/react")
    second = await service.analyze_one("Facebook/React")

    assert second is first
    assert all(probe.calls == 1 for probe in probes.values())


@pytest.mark.asyncio
async def test_analyze_many_empty():
    client = MagicMock()
    batch = await build_service(client).analyze_many([])

    assert batch.total == 0
    assert batch.results == ()
    assert batch.errors == ()


@pytest.mark.asyncio
async def test_close_closes_client_and_history(github_client):
    history = MagicMock()
    service = build_service(github_client, history=history)

    await service.close()

    github_client.close.assert_awaited_once()
    history.close.assert_called_once()
