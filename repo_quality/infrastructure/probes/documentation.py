"""Documentation probe: README presence and quality plus companion documents."""
import re
from typing import Optional
from repo_quality.domain.models import DocumentationMetrics, RepositoryCoordinates
from repo_quality.infrastructure.probes.base import GitHubProbe


README_PATHS = ("README.md", "README.rst", "README.txt", "README")
LICENSE_PATHS = ("LICENSE", "LICENSE.md", "LICENSE.txt", "COPYING")
CONTRIBUTING_PATHS = ("CONTRIBUTING.md", ".github/CONTRIBUTING.md", "docs/CONTRIBUTING.md")
CHANGELOG_PATHS = ("CHANGELOG.md", "CHANGELOG", "HISTORY.md", "RELEASES.md")
API_DOC_PATHS = ("docs/", "documentation/", "API.md", "docs/api/")

_TITLE = re.compile(r"^#\s+.+", re.MULTILINE)
_INSTALL_SECTION = re.compile(r"##\s+(Installation|Install|Setup)", re.IGNORECASE)
_USAGE_SECTION = re.compile(r"##\s+(Usage|Example|Quick\s+Start)", re.IGNORECASE)
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_LINK = re.compile(r"\[.+\]\(.+\)")
_BADGE = re.compile(r"!\[.*\]\(.*\)")


def readme_quality(content: Optional[str]) -> int:
    """Score README content from 0 to 100 with simple structural heuristics."""
    if not content:
        return 0

    score = 0
    if len(content) >= 500:
        score += 20
    elif len(content) >= 200:
        score += 10
    if _TITLE.search(content):
        score += 10
    if len(content) > 100:
        score += 10
    if _INSTALL_SECTION.search(content):
        score += 15
    if _USAGE_SECTION.search(content):
        score += 15
    if _CODE_BLOCK.search(content):
        score += 10
    if _LINK.search(content):
        score += 10
    if _BADGE.search(content):
        score += 10

    return min(score, 100)


class DocumentationProbe(GitHubProbe):
    dimension = "documentation"

    async def _collect(self, coordinates: RepositoryCoordinates) -> DocumentationMetrics:
        owner, name = coordinates.owner, coordinates.name
        all_paths = README_PATHS + LICENSE_PATHS + CONTRIBUTING_PATHS + CHANGELOG_PATHS + API_DOC_PATHS
        found = await self._github.find_existing_paths(owner, name, all_paths)

        readme_path = next((path for path in README_PATHS if path in found), None)
        content = None
        if readme_path is not None:
            content = await self._github.get_file_content(owner, name, readme_path)

        return DocumentationMetrics(
            has_readme=readme_path is not None,
            readme_quality=readme_quality(content),
            has_contributing=any(path in found for path in CONTRIBUTING_PATHS),
            has_license=any(path in found for path in LICENSE_PATHS),
            has_changelog=any(path in found for path in CHANGELOG_PATHS),
            api_documentation=any(path in found for path in API_DOC_PATHS)
        )

    def default_fragment(self) -> DocumentationMetrics:
        return DocumentationMetrics.default()
