"""Security probe: policy, update automation, known-vulnerable packages and committed secrets."""
import asyncio
from repo_quality.domain.models import RepositoryCoordinates, SecurityMetrics
from repo_quality.infrastructure.probes.base import GitHubProbe, dependency_names


SECURITY_POLICY_PATHS = (
    "SECURITY.md",
    ".github/SECURITY.md",
    "docs/SECURITY.md",
    ".github/security/policy.md",
)
DEPENDABOT_PATHS = (
    ".github/dependabot.yml",
    ".github/dependabot.yaml",
    ".dependabot/config.yml",
)
SECRET_FILE_PATHS = (
    ".env",
    ".env.local",
    "config.json",
    "secrets.json",
    ".npmrc",
    ".aws/credentials",
    "credentials.json",
)

# Packages with widely known vulnerable release lines. Presence alone counts;
# version ranges are not resolved.
KNOWN_VULNERABLE_PACKAGES = frozenset({
    "lodash",
    "minimist",
    "serialize-javascript",
    "ws",
    "glob-parent",
    "tar",
    "immer",
})


def raw_security_score(
    has_security_policy: bool,
    vulnerabilities: int,
    dependabot_enabled: bool,
    secrets_exposed: int
) -> int:
    score = 50

    if has_security_policy:
        score += 20
    if dependabot_enabled:
        score += 15

    if vulnerabilities == 0:
        score += 10
    elif vulnerabilities <= 2:
        score += 5
    elif vulnerabilities > 5:
        score -= vulnerabilities * 2

    if secrets_exposed > 0:
        score -= secrets_exposed * 5

    return max(0, min(100, score))


class SecurityProbe(GitHubProbe):
    dimension = "security"

    async def _collect(self, coordinates: RepositoryCoordinates) -> SecurityMetrics:
        found, package = await asyncio.gather(
            self._github.find_existing_paths(
                coordinates.owner,
                coordinates.name,
                SECURITY_POLICY_PATHS + DEPENDABOT_PATHS + SECRET_FILE_PATHS
            ),
            self._read_package_json(coordinates),
        )

        has_security_policy = any(path in found for path in SECURITY_POLICY_PATHS)
        dependabot_enabled = any(path in found for path in DEPENDABOT_PATHS)
        secrets_exposed = sum(1 for path in SECRET_FILE_PATHS if path in found)
        vulnerabilities = self.count_vulnerabilities(package)

        return SecurityMetrics(
            has_security_policy=has_security_policy,
            vulnerabilities=vulnerabilities,
            dependabot_enabled=dependabot_enabled,
            secrets_exposed=secrets_exposed,
            security_score=raw_security_score(
                has_security_policy, vulnerabilities, dependabot_enabled, secrets_exposed
            )
        )

    @staticmethod
    def count_vulnerabilities(package) -> int:
        if not package:
            return 0
        names = dependency_names(package, "dependencies", "devDependencies")
        return sum(1 for name in names if name in KNOWN_VULNERABLE_PACKAGES)

    def default_fragment(self) -> SecurityMetrics:
        return SecurityMetrics.default()
