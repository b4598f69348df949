"""Testing probe: presence of tests and of a CI/CD configuration."""
from repo_quality.domain.models import RepositoryCoordinates, TestingMetrics
from repo_quality.infrastructure.probes.base import GitHubProbe


TEST_PATHS = (
    "test/",
    "tests/",
    "__tests__/",
    "spec/",
    "test.js",
    "test.ts",
    "tests.js",
    "tests.ts",
    "test.py",
    "tests.py",
)

CI_PATHS = (
    # GitHub Actions
    ".github/workflows/",
    # GitLab CI
    ".gitlab-ci.yml",
    # Travis CI
    ".travis.yml",
    ".travis.yaml",
    # Circle CI
    ".circleci/config.yml",
    "circle.yml",
    # Jenkins
    "Jenkinsfile",
    # AppVeyor
    "appveyor.yml",
    # Azure Pipelines
    "azure-pipelines.yml",
    "azure-pipelines.yaml",
    # Drone CI
    ".drone.yml",
    # Buildkite
    ".buildkite/pipeline.yml",
)


class TestingProbe(GitHubProbe):
    """Detects tests and CI configuration.

    Coverage and CI status would need CI provider APIs, so they stay unknown.
    """
    __test__ = False
    dimension = "testing"

    async def _collect(self, coordinates: RepositoryCoordinates) -> TestingMetrics:
        found = await self._github.find_existing_paths(
            coordinates.owner, coordinates.name, TEST_PATHS + CI_PATHS
        )
        return TestingMetrics(
            has_tests=any(path in found for path in TEST_PATHS),
            has_cicd=any(path in found for path in CI_PATHS),
            ci_status="unknown"
        )

    def default_fragment(self) -> TestingMetrics:
        return TestingMetrics.default()
