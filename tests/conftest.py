"""Shared fixtures for repository quality tests."""
from datetime import datetime, timedelta, timezone
import pytest
from repo_quality.application.scoring_engine import ScoringEngine
from repo_quality.domain.models import (
    AnalysisResult,
    QualityScore,
    RepositoryInfo,
    RepositoryMetrics,
    ScoreBreakdown,
)


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def repository_info():
    """Factory for RepositoryInfo entities."""
    def _build(owner="facebook", name="react", stars=200000):
        return RepositoryInfo(
            owner=owner,
            name=name,
            url=f"https://github.com/{owner}/{name}",
            stars=stars,
            forks=40000,
            open_issues=800,
            created_at=datetime(2013, 5, 24, 16, 15, 54, tzinfo=timezone.utc),
            updated_at=datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
            description="A JavaScript library for building user interfaces",
            language="JavaScript",
            license="MIT"
        )
    return _build


@pytest.fixture
def make_result(repository_info):
    """Factory for AnalysisResult entities with a uniform or explicit breakdown.

    ``overall`` sets every dimension to the same score; ``breakdown`` overrides it.
    ``index`` spaces timestamps one hour apart so snapshots stay ordered.
    """
    def _build(overall=75, owner="facebook", name="react", index=0, breakdown=None, metrics=None):
        scores = breakdown or {
            "code_quality": overall,
            "documentation": overall,
            "testing": overall,
            "community": overall,
            "security": overall,
            "dependencies": overall,
        }
        return AnalysisResult(
            repository=repository_info(owner, name),
            score=QualityScore(
                overall=overall,
                breakdown=ScoreBreakdown(**scores),
                grade="C",
                recommendations=()
            ),
            metrics=metrics or RepositoryMetrics(),
            timestamp=BASE_TIME + timedelta(hours=index),
            duration_ms=1200
        )
    return _build


@pytest.fixture
def scoring_engine():
    return ScoringEngine()
