"""Analysis service orchestrating probes, scoring, caching and history."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from repo_quality.application.history_service import HistoryService
from repo_quality.application.scoring_engine import ScoringEngine
from repo_quality.domain.exceptions import AnalysisFailedError
from repo_quality.domain.github_interface import IGitHubClient
from repo_quality.domain.models import (
    DIMENSIONS,
    AnalysisResult,
    BatchAnalysisResult,
    BatchError,
    RepositoryCoordinates,
    RepositoryMetrics,
)
from repo_quality.domain.probe_interface import IMetricProbe
from repo_quality.domain.references import parse_repository_reference
from repo_quality.infrastructure.cache import TwoTierCache


logger = logging.getLogger(__name__)


class AnalysisService:
    """Application service for analyzing GitHub repositories.

    Coordinates the metadata fetcher, the metric probes, the scoring engine,
    the cache and the history. Probes run concurrently per repository;
    batches run in fixed-size concurrency windows.
    """

    def __init__(
        self,
        github_client: IGitHubClient,
        probes: Sequence[IMetricProbe],
        scoring_engine: ScoringEngine,
        cache: Optional[TwoTierCache] = None,
        history: Optional[HistoryService] = None,
        cache_ttl: Optional[float] = None,
        max_repos_per_batch: int = 10,
        concurrency: int = 3
    ):
        """Initialize analysis service.

        Args:
            github_client: Metadata fetcher
            probes: One probe per scoring dimension
            scoring_engine: Engine holding the configured weights
            cache: Result cache; None disables caching
            history: Snapshot history; None disables recording
            cache_ttl: TTL in seconds for cached results (cache default if None)
            max_repos_per_batch: Batch inputs beyond this count are dropped
            concurrency: Number of repositories analyzed at once in a batch

        Raises:
            ValueError: If the probes do not cover every dimension exactly once
        """
        dimensions = sorted(probe.dimension for probe in probes)
        if dimensions != sorted(DIMENSIONS):
            raise ValueError(f"Expected one probe per dimension {DIMENSIONS}, got {dimensions}")

        self._github_client = github_client
        self._probes = list(probes)
        self._scoring_engine = scoring_engine
        self._cache = cache
        self._history = history
        self._cache_ttl = cache_ttl
        self._max_repos_per_batch = max_repos_per_batch
        self._concurrency = concurrency
        # Analyses currently running, by cache key; concurrent callers share one
        self._in_flight: Dict[str, asyncio.Future] = {}

    @property
    def history(self) -> Optional[HistoryService]:
        return self._history

    async def analyze_one(self, repository: str) -> AnalysisResult:
        """Analyze a single repository.

        Returns the cached result when one is still valid; otherwise runs
        the metadata fetch and every probe concurrently, scores the metrics,
        caches the result and records a history snapshot. A call for a
        repository whose analysis is already running awaits that analysis
        and receives the same result (or the same error).

        Args:
            repository: GitHub URL or owner/name reference

        Returns:
            AnalysisResult for the repository

        Raises:
            InvalidReferenceError: If the reference cannot be parsed
            AnalysisFailedError: If the repository metadata cannot be fetched
        """
        start_time = time.perf_counter()
        coordinates = parse_repository_reference(repository)
        cache_key = TwoTierCache.repository_key(coordinates.owner, coordinates.name)

        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.info(f"Cache hit for {coordinates}")
                return cached

        pending = self._in_flight.get(cache_key)
        if pending is not None:
            logger.info(f"Joining analysis already running for {coordinates}")
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._analyze(repository, coordinates, cache_key, start_time))
        self._in_flight[cache_key] = task
        try:
            return await task
        finally:
            self._in_flight.pop(cache_key, None)

    async def _analyze(
        self,
        repository: str,
        coordinates: RepositoryCoordinates,
        cache_key: str,
        start_time: float
    ) -> AnalysisResult:
        """Run the fan-out, score, record and cache one repository."""
        logger.info(f"Analyzing {coordinates}")

        info_outcome, *probe_outcomes = await asyncio.gather(
            self._github_client.get_repository_info(coordinates.owner, coordinates.name),
            *(probe.analyze(coordinates) for probe in self._probes),
            return_exceptions=True
        )

        if isinstance(info_outcome, BaseException):
            logger.error(f"Analysis failed for {repository}: {info_outcome}")
            raise AnalysisFailedError(repository, info_outcome) from info_outcome

        metrics = self._collect_metrics(coordinates, probe_outcomes)
        score = self._scoring_engine.calculate_score(metrics)

        result = AnalysisResult(
            repository=info_outcome,
            score=score,
            metrics=metrics,
            timestamp=datetime.now(timezone.utc),
            duration_ms=0
        )

        if self._history is not None:
            self._history.record_analysis(result)

        # The cached copy carries the duration so a later hit returns an identical result
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        result = result.with_duration(duration_ms)

        if self._cache is not None:
            self._cache.set(cache_key, result, self._cache_ttl)

        logger.info(
            f"Analyzed {coordinates}: score {score.overall} (grade {score.grade}) "
            f"in {duration_ms} ms"
        )
        return result

    async def analyze_many(self, repositories: Sequence[str]) -> BatchAnalysisResult:
        """Analyze several repositories with bounded concurrency.

        Inputs beyond max_repos_per_batch are dropped. Each window of
        `concurrency` repositories settles completely before the next one
        starts. Failures are recorded per repository and never abort the
        batch.

        Args:
            repositories: GitHub URLs or owner/name references

        Returns:
            BatchAnalysisResult with successes and failures
        """
        to_analyze = list(repositories)[:self._max_repos_per_batch]
        if len(repositories) > len(to_analyze):
            logger.info(
                f"Batch limited to {len(to_analyze)} of {len(repositories)} repositories"
            )

        results: List[AnalysisResult] = []
        errors: List[BatchError] = []

        for start in range(0, len(to_analyze), self._concurrency):
            window = to_analyze[start:start + self._concurrency]
            outcomes = await asyncio.gather(
                *(self.analyze_one(repository) for repository in window),
                return_exceptions=True
            )

            for repository, outcome in zip(window, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Batch item {repository} failed: {outcome}")
                    errors.append(BatchError(repository=repository, error=str(outcome)))
                else:
                    results.append(outcome)

            logger.info(
                f"Processed {start + len(window)}/{len(to_analyze)} repositories "
                f"({len(errors)} failed)"
            )

        return BatchAnalysisResult(
            total=len(to_analyze),
            completed=len(results),
            failed=len(errors),
            results=tuple(results),
            errors=tuple(errors)
        )

    def _collect_metrics(
        self,
        coordinates: RepositoryCoordinates,
        outcomes: List[Any]
    ) -> RepositoryMetrics:
        """Join probe outcomes, substituting defaults for failed probes."""
        fragments = {}
        for probe, outcome in zip(self._probes, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    f"{probe.dimension} probe failed for {coordinates}: {outcome}. Using defaults"
                )
                outcome = probe.default_fragment()
            fragments[probe.dimension] = outcome
        return RepositoryMetrics(**fragments)

    async def close(self) -> None:
        """Close connections."""
        await self._github_client.close()
        if self._history is not None:
            self._history.close()
