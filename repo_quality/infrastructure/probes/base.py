"""Shared plumbing for probes that inspect a repository through the GitHub port."""
import json
import logging
from typing import Any, Optional
from repo_quality.domain.exceptions import ProbeError
from repo_quality.domain.github_interface import IGitHubClient
from repo_quality.domain.models import RepositoryCoordinates
from repo_quality.domain.probe_interface import IMetricProbe


logger = logging.getLogger(__name__)


class GitHubProbe(IMetricProbe):
    """Base class for heuristic probes backed by an IGitHubClient.

    Subclasses implement ``_collect``; any failure it raises reaches the
    caller as a ProbeError naming the dimension and repository.
    """

    def __init__(self, github_client: IGitHubClient):
        self._github = github_client

    async def analyze(self, coordinates: RepositoryCoordinates) -> Any:
        try:
            return await self._collect(coordinates)
        except Exception as e:
            raise ProbeError(f"{self.dimension} probe failed for {coordinates}: {e}") from e

    async def _collect(self, coordinates: RepositoryCoordinates) -> Any:
        raise NotImplementedError

    async def _read_package_json(self, coordinates: RepositoryCoordinates) -> Optional[dict]:
        """Return the parsed package.json, or None when absent or malformed."""
        content = await self._github.get_file_content(
            coordinates.owner, coordinates.name, "package.json"
        )
        if not content:
            return None

        try:
            package = json.loads(content)
        except ValueError:
            logger.debug(f"Ignoring malformed package.json in {coordinates}")
            return None
        return package if isinstance(package, dict) else None


def dependency_names(package: dict, *sections: str) -> list:
    names = []
    for section in sections:
        value = package.get(section) or {}
        if isinstance(value, dict):
            names.extend(value.keys())
    return names
