"""Code quality probe: size, estimated complexity and maintainability."""
import asyncio
import math
from repo_quality.domain.models import CodeQualityMetrics, RepositoryCoordinates
from repo_quality.infrastructure.probes.base import GitHubProbe, dependency_names


TEST_FRAMEWORKS = ("jest", "mocha", "vitest", "@testing-library/react")
LINTERS = ("eslint", "prettier", "tslint")


def complexity_from_size(lines_of_code: int) -> int:
    if lines_of_code > 100000:
        return 10
    if lines_of_code > 50000:
        return 8
    if lines_of_code > 10000:
        return 6
    if lines_of_code > 1000:
        return 4
    return 2


def complexity_from_dependencies(dependency_count: int) -> int:
    if dependency_count > 100:
        return 8
    if dependency_count > 50:
        return 7
    if dependency_count > 20:
        return 6
    return 5


def estimate_code_smells(package: dict) -> int:
    smells = 0
    declared = set(dependency_names(package, "dependencies", "devDependencies"))

    peer_dependencies = package.get("peerDependencies") or {}
    if len(peer_dependencies) > 10:
        smells += 1
    if not any(name in declared for name in TEST_FRAMEWORKS):
        smells += 2
    if not any(name in declared for name in LINTERS):
        smells += 1

    return smells


def estimate_technical_debt(lines_of_code: int, complexity: float, code_smells: int) -> str:
    complexity_score = min(complexity / 10, 1)
    size_score = min(lines_of_code / 100000, 1)
    smell_score = min(code_smells / 50, 1)

    debt_index = (complexity_score + size_score + smell_score) / 3

    if debt_index > 0.7:
        return "High - Significant refactoring needed"
    if debt_index > 0.4:
        return "Medium - Some refactoring recommended"
    if debt_index > 0.2:
        return "Low - Minor improvements possible"
    return "Minimal - Well-maintained codebase"


def maintainability_index(lines_of_code: int, complexity: float, code_smells: int) -> int:
    """Simplified maintainability index in [0, 100], higher is better."""
    if lines_of_code == 0:
        return 100

    score = 100.0
    score -= min(lines_of_code / 10000, 20)
    score -= min(complexity * 2, 30)
    score -= min(code_smells * 2, 20)

    if 1000 < lines_of_code < 50000:
        score += 10

    return max(0, min(100, int(math.floor(score + 0.5))))


class CodeQualityProbe(GitHubProbe):
    """Estimates code quality without running static analysis.

    Lines of code are approximated by the byte totals GitHub reports per
    language; complexity and smells come from the npm manifest when present.
    """
    dimension = "code_quality"

    async def _collect(self, coordinates: RepositoryCoordinates) -> CodeQualityMetrics:
        languages, package = await asyncio.gather(
            self._github.get_languages(coordinates.owner, coordinates.name),
            self._read_package_json(coordinates),
        )
        lines_of_code = sum(languages.values())

        complexity = 5
        code_smells = 0
        if package is not None:
            dependency_count = len(dependency_names(package, "dependencies", "devDependencies"))
            complexity = complexity_from_dependencies(dependency_count)
            code_smells = estimate_code_smells(package)
        elif lines_of_code:
            complexity = complexity_from_size(lines_of_code)
            code_smells = math.ceil(lines_of_code / 1000)

        return CodeQualityMetrics(
            lines_of_code=lines_of_code,
            complexity=complexity,
            maintainability_index=maintainability_index(lines_of_code, complexity, code_smells),
            technical_debt=estimate_technical_debt(lines_of_code, complexity, code_smells),
            code_smells=code_smells
        )

    def default_fragment(self) -> CodeQualityMetrics:
        return CodeQualityMetrics.default()
