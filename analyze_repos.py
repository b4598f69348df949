"""Main entry point for the repository quality analyzer.

This script wires the infrastructure components and runs the analysis
service for one or more repositories.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional
from repo_quality.application.analysis_service import AnalysisService
from repo_quality.application.history_service import HistoryService
from repo_quality.application.scoring_engine import ScoringEngine
from repo_quality.config import Settings, load_config
from repo_quality.domain.exceptions import ConfigurationError, RepoQualityError
from repo_quality.domain.github_interface import IGitHubClient
from repo_quality.domain.history_storage_interface import IHistoryStorage
from repo_quality.domain.models import AnalysisResult
from repo_quality.domain.references import is_valid_reference
from repo_quality.infrastructure.cache import TwoTierCache
from repo_quality.infrastructure.github_client import GitHubGraphQLClient
from repo_quality.infrastructure.json_history_storage import JsonFileHistoryStorage
from repo_quality.infrastructure.postgres_history_storage import PostgresHistoryStorage
from repo_quality.infrastructure.probes.code_quality import CodeQualityProbe
from repo_quality.infrastructure.probes.community import CommunityProbe
from repo_quality.infrastructure.probes.dependencies import DependencyProbe
from repo_quality.infrastructure.probes.documentation import DocumentationProbe
from repo_quality.infrastructure.probes.security import SecurityProbe
from repo_quality.infrastructure.probes.testing import TestingProbe


logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Score the quality of GitHub repositories")
    parser.add_argument("repositories", nargs="+", help="GitHub URLs or owner/name references")
    parser.add_argument("--trends", action="store_true", help="Show trends from previous analyses")
    parser.add_argument("--env-file", help="Load configuration from this file instead of .env")
    return parser.parse_args(argv)


def create_history_storage(settings: Settings) -> Optional[IHistoryStorage]:
    if settings.history_backend == "postgres":
        return PostgresHistoryStorage(settings.postgres_dsn)
    if settings.history_backend == "json":
        return JsonFileHistoryStorage(settings.history_dir)
    return None


def create_service(settings: Settings, github_client: IGitHubClient) -> AnalysisService:
    """Build the analysis service and its collaborators from validated settings."""
    cache = None
    if settings.cache_enabled:
        cache = TwoTierCache(
            directory=settings.cache_dir,
            default_ttl=settings.cache_ttl,
            encoder=AnalysisResult.to_dict,
            decoder=AnalysisResult.from_dict
        )

    probes = [
        CodeQualityProbe(github_client),
        DocumentationProbe(github_client),
        TestingProbe(github_client),
        CommunityProbe(github_client),
        SecurityProbe(github_client),
        DependencyProbe(github_client),
    ]

    return AnalysisService(
        github_client=github_client,
        probes=probes,
        scoring_engine=ScoringEngine(settings.weights),
        cache=cache,
        history=HistoryService(create_history_storage(settings)),
        cache_ttl=settings.cache_ttl,
        max_repos_per_batch=settings.max_repos_per_batch,
        concurrency=settings.concurrency
    )


def log_result(result: AnalysisResult) -> None:
    logger.info("=" * 50)
    logger.info(f"Repository: {result.repository.full_name}")
    logger.info(f"  Overall score: {result.score.overall}/100 (Grade: {result.score.grade})")
    logger.info(f"  Duration: {result.duration_ms / 1000:.2f} seconds")
    for dimension, score in result.score.breakdown.items():
        logger.info(f"  {dimension}: {score}/100")
    for recommendation in result.score.recommendations:
        logger.info(f"  - {recommendation}")


def log_trends(service: AnalysisService, result: AnalysisResult) -> None:
    history = service.history
    owner, name = result.repository.owner, result.repository.name

    trends = history.get_trends(owner, name)
    if not trends:
        logger.info("  Not enough history for trends yet")
    for trend in trends:
        logger.info(f"  {trend.dimension}: {trend.previous} -> {trend.current} ({trend.change:+.2f}%, {trend.trend})")

    stats = history.get_statistics(owner, name)
    logger.info(
        f"  {stats.total_analyses} analyses, average {stats.average_score}, "
        f"range {stats.lowest_score}-{stats.highest_score}, {stats.trend}"
    )


async def main(argv: Optional[List[str]] = None) -> int:
    """Execute the analysis."""
    args = parse_args(argv)

    try:
        settings = load_config(env_file=args.env_file)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not settings.github_token:
        logger.error("GITHUB_TOKEN environment variable is required")
        return 1

    rejected = [r for r in args.repositories if not is_valid_reference(r)]
    for reference in rejected:
        logger.error(f"Skipping invalid repository reference: {reference}")
    repositories = [r for r in args.repositories if r not in rejected]
    failed = len(rejected)
    if not repositories:
        return 1

    github_client = GitHubGraphQLClient(
        settings.github_token,
        url=settings.github_url,
        timeout=settings.timeout
    )
    service = create_service(settings, github_client)

    results: List[AnalysisResult] = []
    try:
        if len(repositories) == 1:
            try:
                results.append(await service.analyze_one(repositories[0]))
            except RepoQualityError as e:
                logger.error(str(e))
                failed += 1
        else:
            batch = await service.analyze_many(repositories)
            results.extend(batch.results)
            failed += batch.failed
            logger.info(f"Batch: {batch.total} total, {batch.completed} completed, {batch.failed} failed")
            for error in batch.errors:
                logger.error(f"  {error.repository}: {error.error}")

        for result in results:
            log_result(result)
            if args.trends:
                log_trends(service, result)

    except Exception as e:
        logger.error(f"Analysis run failed: {e}", exc_info=True)
        return 1
    finally:
        await service.close()

    below_threshold = [r for r in results if r.score.overall < settings.min_quality_score]
    for result in below_threshold:
        logger.warning(
            f"{result.repository.full_name} scored {result.score.overall}, "
            f"below the minimum of {settings.min_quality_score}"
        )

    return 1 if failed or below_threshold else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
