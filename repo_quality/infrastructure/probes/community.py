"""Community probe: contributors, popularity and community health files."""
import asyncio
from repo_quality.domain.models import CommunityMetrics, RepositoryCoordinates
from repo_quality.infrastructure.probes.base import GitHubProbe


CODE_OF_CONDUCT_PATHS = (
    "CODE_OF_CONDUCT.md",
    ".github/CODE_OF_CONDUCT.md",
    "docs/CODE_OF_CONDUCT.md",
    "CONDUCT.md",
)
ISSUE_TEMPLATE_PATHS = (
    ".github/ISSUE_TEMPLATE",
    ".github/issue_template",
    ".github/ISSUE_TEMPLATE.md",
    ".github/issue_template.md",
)
PR_TEMPLATE_PATHS = (
    ".github/PULL_REQUEST_TEMPLATE.md",
    ".github/pull_request_template.md",
    ".github/PULL_REQUEST_TEMPLATE",
    ".github/pull_request_template",
)

# (minimum, points), checked from the top
CONTRIBUTOR_TIERS = ((100, 30), (50, 25), (20, 20), (10, 15), (5, 10), (1, 5))
STAR_TIERS = ((10000, 30), (5000, 25), (1000, 20), (500, 15), (100, 10), (10, 5))

ONE_DAY_SECONDS = 24 * 60 * 60


def _tier_points(value: int, tiers) -> int:
    for minimum, points in tiers:
        if value >= minimum:
            return points
    return 0


def community_health_score(
    contributors: int,
    stars: int,
    has_code_of_conduct: bool,
    has_issue_templates: bool,
    has_pr_templates: bool,
    issue_response_time=None
) -> int:
    """Health score out of 100: contributors (30), stars (30), practices (40)."""
    score = _tier_points(contributors, CONTRIBUTOR_TIERS) + _tier_points(stars, STAR_TIERS)

    if has_code_of_conduct:
        score += 10
    if has_issue_templates:
        score += 10
    if has_pr_templates:
        score += 10
    if issue_response_time and issue_response_time < ONE_DAY_SECONDS:
        score += 10

    return min(100, score)


class CommunityProbe(GitHubProbe):
    dimension = "community"

    async def _collect(self, coordinates: RepositoryCoordinates) -> CommunityMetrics:
        owner, name = coordinates.owner, coordinates.name
        contributors, stars, found = await asyncio.gather(
            self._github.get_contributor_count(owner, name),
            self._github.get_star_count(owner, name),
            self._github.find_existing_paths(
                owner, name, CODE_OF_CONDUCT_PATHS + ISSUE_TEMPLATE_PATHS + PR_TEMPLATE_PATHS
            ),
        )

        has_code_of_conduct = any(path in found for path in CODE_OF_CONDUCT_PATHS)
        has_issue_templates = any(path in found for path in ISSUE_TEMPLATE_PATHS)
        has_pr_templates = any(path in found for path in PR_TEMPLATE_PATHS)

        # Response time needs per-issue timelines; not collected yet
        issue_response_time = None

        return CommunityMetrics(
            contributors=contributors,
            issue_response_time=issue_response_time,
            has_code_of_conduct=has_code_of_conduct,
            has_issue_templates=has_issue_templates,
            has_pr_templates=has_pr_templates,
            community_health_score=community_health_score(
                contributors,
                stars,
                has_code_of_conduct,
                has_issue_templates,
                has_pr_templates,
                issue_response_time
            )
        )

    def default_fragment(self) -> CommunityMetrics:
        return CommunityMetrics.default()
