"""Domain models representing core business entities."""
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Tuple


# Fixed dimension order used for breakdowns, trends and weights
DIMENSIONS: Tuple[str, ...] = (
    "code_quality",
    "documentation",
    "testing",
    "community",
    "security",
    "dependencies",
)

HISTORY_LIMIT = 100


def _parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 string back into a datetime (pass datetimes through)."""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class RepositoryCoordinates:
    """Immutable identity of a GitHub repository.

    Used for every keying decision (cache keys, history ids).
    """
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        """Returns the full repository name (owner/name)."""
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class RepositoryInfo:
    """Repository metadata returned by the metadata fetcher."""
    owner: str
    name: str
    url: str
    stars: int
    forks: int
    open_issues: int
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    language: Optional[str] = None
    license: Optional[str] = None

    @property
    def full_name(self) -> str:
        """Returns the full repository name (owner/name)."""
        return f"{self.owner}/{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepositoryInfo':
        values = dict(data)
        values["created_at"] = _parse_datetime(values["created_at"])
        values["updated_at"] = _parse_datetime(values["updated_at"])
        return cls(**values)


class _Fragment:
    """Serialization helpers shared by the per-dimension metric fragments."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls(**data)


@dataclass(frozen=True)
class CodeQualityMetrics(_Fragment):
    lines_of_code: int = 0
    complexity: Optional[float] = None
    maintainability_index: Optional[float] = None
    technical_debt: Optional[str] = None
    code_smells: Optional[int] = None

    @classmethod
    def default(cls) -> 'CodeQualityMetrics':
        return cls()


@dataclass(frozen=True)
class DocumentationMetrics(_Fragment):
    has_readme: bool = False
    readme_quality: int = 0
    has_contributing: bool = False
    has_license: bool = False
    has_changelog: bool = False
    api_documentation: bool = False

    @classmethod
    def default(cls) -> 'DocumentationMetrics':
        return cls()


@dataclass(frozen=True)
class TestingMetrics(_Fragment):
    # Not a test class, despite the name
    __test__ = False

    has_tests: bool = False
    test_coverage: Optional[float] = None
    test_framework: Optional[str] = None
    has_cicd: bool = False
    ci_status: str = "unknown"

    @classmethod
    def default(cls) -> 'TestingMetrics':
        return cls()


@dataclass(frozen=True)
class CommunityMetrics(_Fragment):
    contributors: int = 0
    issue_response_time: Optional[float] = None
    has_code_of_conduct: bool = False
    has_issue_templates: bool = False
    has_pr_templates: bool = False
    community_health_score: int = 0

    @classmethod
    def default(cls) -> 'CommunityMetrics':
        return cls()


@dataclass(frozen=True)
class SecurityMetrics(_Fragment):
    has_security_policy: bool = False
    vulnerabilities: int = 0
    dependabot_enabled: bool = False
    secrets_exposed: int = 0
    security_score: int = 0

    @classmethod
    def default(cls) -> 'SecurityMetrics':
        return cls()


@dataclass(frozen=True)
class DependencyMetrics(_Fragment):
    total_dependencies: int = 0
    outdated_dependencies: int = 0
    deprecated_dependencies: int = 0
    dependency_health: int = 0

    @classmethod
    def default(cls) -> 'DependencyMetrics':
        return cls()


FRAGMENT_TYPES = {
    "code_quality": CodeQualityMetrics,
    "documentation": DocumentationMetrics,
    "testing": TestingMetrics,
    "community": CommunityMetrics,
    "security": SecurityMetrics,
    "dependencies": DependencyMetrics,
}


@dataclass(frozen=True)
class RepositoryMetrics:
    """Aggregate of the six metric fragments.

    Every fragment is always present; a failed probe contributes its
    default fragment instead of None.
    """
    code_quality: CodeQualityMetrics = field(default_factory=CodeQualityMetrics.default)
    documentation: DocumentationMetrics = field(default_factory=DocumentationMetrics.default)
    testing: TestingMetrics = field(default_factory=TestingMetrics.default)
    community: CommunityMetrics = field(default_factory=CommunityMetrics.default)
    security: SecurityMetrics = field(default_factory=SecurityMetrics.default)
    dependencies: DependencyMetrics = field(default_factory=DependencyMetrics.default)

    def to_dict(self) -> Dict[str, Any]:
        return {dimension: getattr(self, dimension).to_dict() for dimension in DIMENSIONS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepositoryMetrics':
        return cls(**{
            dimension: FRAGMENT_TYPES[dimension].from_dict(data[dimension])
            for dimension in DIMENSIONS
        })


@dataclass(frozen=True)
class ScoringWeights:
    """Relative weight of each dimension in the overall score.

    Validated by the configuration layer to sum to 1.0 (within 0.01).
    """
    code_quality: float = 0.25
    documentation: float = 0.2
    testing: float = 0.2
    community: float = 0.15
    security: float = 0.15
    dependencies: float = 0.05

    def items(self) -> Iterator[Tuple[str, float]]:
        for dimension in DIMENSIONS:
            yield dimension, getattr(self, dimension)

    def total(self) -> float:
        return sum(weight for _, weight in self.items())


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-dimension scores, each an integer in [0, 100]."""
    code_quality: int
    documentation: int
    testing: int
    community: int
    security: int
    dependencies: int

    def items(self) -> Iterator[Tuple[str, int]]:
        for dimension in DIMENSIONS:
            yield dimension, getattr(self, dimension)

    def to_dict(self) -> Dict[str, int]:
        return dict(self.items())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoreBreakdown':
        return cls(**{dimension: int(data[dimension]) for dimension in DIMENSIONS})


@dataclass(frozen=True)
class QualityScore:
    overall: int
    breakdown: ScoreBreakdown
    grade: str
    recommendations: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "breakdown": self.breakdown.to_dict(),
            "grade": self.grade,
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QualityScore':
        return cls(
            overall=int(data["overall"]),
            breakdown=ScoreBreakdown.from_dict(data["breakdown"]),
            grade=data["grade"],
            recommendations=tuple(data["recommendations"]),
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of one successful repository analysis.

    Created once and handed to the caller; the cache keeps the same
    instance, so a cache hit returns an identical result.
    """
    repository: RepositoryInfo
    score: QualityScore
    metrics: RepositoryMetrics
    timestamp: datetime
    duration_ms: int

    @property
    def coordinates(self) -> RepositoryCoordinates:
        return RepositoryCoordinates(self.repository.owner, self.repository.name)

    def with_duration(self, duration_ms: int) -> 'AnalysisResult':
        """Returns a new AnalysisResult with the provided duration."""
        return replace(self, duration_ms=duration_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository.to_dict(),
            "score": self.score.to_dict(),
            "metrics": self.metrics.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisResult':
        return cls(
            repository=RepositoryInfo.from_dict(data["repository"]),
            score=QualityScore.from_dict(data["score"]),
            metrics=RepositoryMetrics.from_dict(data["metrics"]),
            timestamp=_parse_datetime(data["timestamp"]),
            duration_ms=int(data["duration_ms"]),
        )


@dataclass(frozen=True)
class SnapshotMetrics:
    """Raw metrics retained alongside each history snapshot."""
    lines_of_code: int
    contributors: int
    vulnerabilities: int
    test_coverage: Optional[float] = None


@dataclass(frozen=True)
class AnalysisSnapshot:
    timestamp: datetime
    overall_score: int
    breakdown: ScoreBreakdown
    metrics: SnapshotMetrics

    @classmethod
    def from_result(cls, result: AnalysisResult) -> 'AnalysisSnapshot':
        return cls(
            timestamp=result.timestamp,
            overall_score=result.score.overall,
            breakdown=result.score.breakdown,
            metrics=SnapshotMetrics(
                lines_of_code=result.metrics.code_quality.lines_of_code,
                contributors=result.metrics.community.contributors,
                vulnerabilities=result.metrics.security.vulnerabilities,
                test_coverage=result.metrics.testing.test_coverage,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "overall_score": self.overall_score,
            "breakdown": self.breakdown.to_dict(),
            "metrics": asdict(self.metrics),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisSnapshot':
        return cls(
            timestamp=_parse_datetime(data["timestamp"]),
            overall_score=int(data["overall_score"]),
            breakdown=ScoreBreakdown.from_dict(data["breakdown"]),
            metrics=SnapshotMetrics(**data["metrics"]),
        )


@dataclass(frozen=True)
class AnalysisHistory:
    """Ordered, size-bounded snapshot log for one repository (oldest first)."""
    repository_id: str
    owner: str
    repo: str
    analyses: Tuple[AnalysisSnapshot, ...] = ()

    @classmethod
    def for_repository(cls, coordinates: RepositoryCoordinates) -> 'AnalysisHistory':
        return cls(
            repository_id=coordinates.full_name,
            owner=coordinates.owner,
            repo=coordinates.name,
        )

    def append(self, snapshot: AnalysisSnapshot, limit: int = HISTORY_LIMIT) -> 'AnalysisHistory':
        """Returns a new history with the snapshot added, dropping the oldest past the limit."""
        analyses = (self.analyses + (snapshot,))[-limit:]
        return replace(self, analyses=analyses)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository_id": self.repository_id,
            "owner": self.owner,
            "repo": self.repo,
            "analyses": [snapshot.to_dict() for snapshot in self.analyses],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisHistory':
        return cls(
            repository_id=data["repository_id"],
            owner=data["owner"],
            repo=data["repo"],
            analyses=tuple(AnalysisSnapshot.from_dict(item) for item in data.get("analyses", [])),
        )


@dataclass(frozen=True)
class Trend:
    dimension: str
    current: float
    previous: float
    change: float
    trend: str  # "up" | "down" | "stable"


@dataclass(frozen=True)
class HistoryStatistics:
    total_analyses: int
    average_score: int
    highest_score: int
    lowest_score: int
    trend: str  # "improving" | "declining" | "stable"


@dataclass(frozen=True)
class ScorePoint:
    date: datetime
    score: int


@dataclass(frozen=True)
class BatchError:
    repository: str
    error: str


@dataclass(frozen=True)
class BatchAnalysisResult:
    """Outcome of a batch run; item failures are recorded, never raised."""
    total: int
    completed: int
    failed: int
    results: Tuple[AnalysisResult, ...]
    errors: Tuple[BatchError, ...]


@dataclass(frozen=True)
class CacheStats:
    memory_items: int
    disk_items: int
    total_size: int
