"""GitHub API interface (port) for fetching repository data.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Set
from repo_quality.domain.models import RepositoryInfo


class IGitHubClient(ABC):
    """Abstract interface for GitHub API operations."""

    @abstractmethod
    async def get_repository_info(self, owner: str, name: str) -> RepositoryInfo:
        """Fetch repository metadata.

        Args:
            owner: Repository owner login
            name: Repository name

        Returns:
            RepositoryInfo for the repository

        Raises:
            MetadataFetchError: If the repository cannot be fetched
        """
        pass

    @abstractmethod
    async def find_existing_paths(self, owner: str, name: str, paths: Iterable[str]) -> Set[str]:
        """Return the subset of paths (files or directories) present on the default branch."""
        pass

    @abstractmethod
    async def get_file_content(self, owner: str, name: str, path: str) -> Optional[str]:
        """Return the text of a file on the default branch, or None if absent or binary."""
        pass

    @abstractmethod
    async def get_languages(self, owner: str, name: str) -> Dict[str, int]:
        """Return the number of bytes of code per language."""
        pass

    @abstractmethod
    async def get_contributor_count(self, owner: str, name: str) -> int:
        pass

    @abstractmethod
    async def get_star_count(self, owner: str, name: str) -> int:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
