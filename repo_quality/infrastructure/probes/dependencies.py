"""Dependency probe: declared, outdated and deprecated npm dependencies."""
import re
from repo_quality.domain.models import DependencyMetrics, RepositoryCoordinates
from repo_quality.infrastructure.probes.base import GitHubProbe, dependency_names


ALL_SECTIONS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")
CHECKED_SECTIONS = ("dependencies", "devDependencies")

# Lowest major version still considered current
MINIMUM_MAJOR_VERSIONS = {
    "react": 16,
    "vue": 2,
    "angular": 10,
    "typescript": 4,
    "eslint": 7,
    "prettier": 2,
    "jest": 26,
    "webpack": 4,
    "babel": 7,
}

DEPRECATED_PACKAGES = frozenset({
    "node-uuid",
    "bower",
    "gulp-util",
    "node-inspector",
    "jade",
    "express-less",
    "cluster-key-ad",
    "cluster-key-linearizer",
    "kraken-js",
})

_VERSION_PREFIX = re.compile(r"^[\^~=v]")


def major_version(version: str) -> int:
    cleaned = _VERSION_PREFIX.sub("", str(version).strip())
    try:
        return int(cleaned.split(".")[0])
    except ValueError:
        return 0


def is_outdated(name: str, version: str) -> bool:
    minimum = MINIMUM_MAJOR_VERSIONS.get(name)
    if minimum is None:
        return False
    return major_version(version) < minimum


def dependency_health(total: int, outdated: int, deprecated: int) -> int:
    if total == 0:
        return 100

    score = 100.0

    outdated_ratio = outdated / total
    if outdated_ratio > 0.5:
        score -= 40
    elif outdated_ratio > 0.2:
        score -= 25
    elif outdated_ratio > 0.1:
        score -= 15
    elif outdated_ratio > 0:
        score -= 5

    score -= (deprecated / total) * 50

    if total <= 20:
        score += 5
    elif total > 100:
        score -= 10

    return max(0, min(100, int(score + 0.5)))


class DependencyProbe(GitHubProbe):
    dimension = "dependencies"

    async def _collect(self, coordinates: RepositoryCoordinates) -> DependencyMetrics:
        package = await self._read_package_json(coordinates)
        if package is None:
            return DependencyMetrics(dependency_health=dependency_health(0, 0, 0))

        total = len(dependency_names(package, *ALL_SECTIONS))

        outdated = 0
        deprecated = 0
        for section in CHECKED_SECTIONS:
            declared = package.get(section) or {}
            if not isinstance(declared, dict):
                continue
            for name, version in declared.items():
                if is_outdated(name, version):
                    outdated += 1
                if name in DEPRECATED_PACKAGES:
                    deprecated += 1

        return DependencyMetrics(
            total_dependencies=total,
            outdated_dependencies=outdated,
            deprecated_dependencies=deprecated,
            dependency_health=dependency_health(total, outdated, deprecated)
        )

    def default_fragment(self) -> DependencyMetrics:
        return DependencyMetrics.default()
