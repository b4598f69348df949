"""Quality scoring engine turning repository metrics into a graded score."""
import math
from typing import List, Optional
from repo_quality.domain.models import (
    CodeQualityMetrics,
    CommunityMetrics,
    DependencyMetrics,
    DocumentationMetrics,
    QualityScore,
    RepositoryMetrics,
    ScoreBreakdown,
    ScoringWeights,
    SecurityMetrics,
    TestingMetrics,
)


RECOMMENDATION_THRESHOLD = 70

# Evaluated in this order, independent of the scores themselves
RECOMMENDATIONS = (
    ("documentation",
     "Improve documentation: Add or enhance README, CONTRIBUTING, and CHANGELOG files"),
    ("testing", "Increase test coverage and set up CI/CD pipeline"),
    ("security", "Add SECURITY.md and enable Dependabot for security updates"),
    ("community",
     "Add CODE_OF_CONDUCT.md and issue/PR templates to improve community engagement"),
    ("code_quality", "Focus on code maintainability and reducing complexity"),
    ("dependencies", "Update outdated dependencies and remove deprecated packages"),
)
MAINTAIN_QUALITY_MESSAGE = "Great work! Continue maintaining high quality standards"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(round_half_up(value), 100))


def calculate_grade(score: float) -> str:
    """Map a 0-100 score to a letter grade (lower bound of each band inclusive)."""
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


class ScoringEngine:
    """Pure aggregator from RepositoryMetrics to a QualityScore.

    Weights are trusted to be normalized; validation belongs to the
    configuration layer. Scoring never fails for well-formed metrics.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self._weights = weights or ScoringWeights()

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def calculate_score(self, metrics: RepositoryMetrics) -> QualityScore:
        """Calculate the overall score, breakdown, grade and recommendations.

        Args:
            metrics: Complete metrics for a repository

        Returns:
            QualityScore for the metrics
        """
        breakdown = ScoreBreakdown(
            code_quality=self.code_quality_score(metrics.code_quality),
            documentation=self.documentation_score(metrics.documentation),
            testing=self.testing_score(metrics.testing),
            community=self.community_score(metrics.community),
            security=self.security_score(metrics.security),
            dependencies=self.dependency_score(metrics.dependencies),
        )

        weighted = sum(
            score * getattr(self._weights, dimension)
            for dimension, score in breakdown.items()
        )
        overall = clamp_score(weighted)

        return QualityScore(
            overall=overall,
            breakdown=breakdown,
            grade=calculate_grade(overall),
            recommendations=tuple(self.generate_recommendations(breakdown)),
        )

    @staticmethod
    def code_quality_score(metrics: CodeQualityMetrics) -> int:
        score = 50.0

        if metrics.maintainability_index:
            score += (metrics.maintainability_index / 100) * 30

        if 100 < metrics.lines_of_code < 100_000:
            score += 20
        elif metrics.lines_of_code >= 100_000:
            score += 10

        return clamp_score(score)

    @staticmethod
    def documentation_score(metrics: DocumentationMetrics) -> int:
        score = 0.0

        if metrics.has_readme:
            score += 30
        score += (metrics.readme_quality / 100) * 30
        if metrics.has_license:
            score += 15
        if metrics.has_contributing:
            score += 10
        if metrics.has_changelog:
            score += 10
        if metrics.api_documentation:
            score += 5

        return clamp_score(score)

    @staticmethod
    def testing_score(metrics: TestingMetrics) -> int:
        score = 0.0

        if metrics.has_tests:
            score += 40
        if metrics.test_coverage:
            score += (metrics.test_coverage / 100) * 40
        if metrics.has_cicd:
            score += 20

        return clamp_score(score)

    @staticmethod
    def community_score(metrics: CommunityMetrics) -> int:
        score = metrics.community_health_score * 0.5

        if metrics.has_code_of_conduct:
            score += 15
        if metrics.has_issue_templates:
            score += 15
        if metrics.has_pr_templates:
            score += 10
        if metrics.contributors > 5:
            score += 10

        return clamp_score(score)

    @staticmethod
    def security_score(metrics: SecurityMetrics) -> int:
        score = float(metrics.security_score)

        if metrics.has_security_policy:
            score += 10
        if metrics.dependabot_enabled:
            score += 10

        score -= metrics.vulnerabilities * 5
        score -= metrics.secrets_exposed * 10

        return clamp_score(score)

    @staticmethod
    def dependency_score(metrics: DependencyMetrics) -> int:
        return clamp_score(metrics.dependency_health)

    @staticmethod
    def generate_recommendations(breakdown: ScoreBreakdown) -> List[str]:
        recommendations = [
            message
            for dimension, message in RECOMMENDATIONS
            if getattr(breakdown, dimension) < RECOMMENDATION_THRESHOLD
        ]
        if not recommendations:
            recommendations.append(MAINTAIN_QUALITY_MESSAGE)
        return recommendations
