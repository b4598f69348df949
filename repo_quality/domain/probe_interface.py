"""Metric probe interface (port).

A probe inspects one quality dimension of a repository and returns the
metrics fragment for that dimension.
"""
from abc import ABC, abstractmethod
from typing import Any
from repo_quality.domain.models import RepositoryCoordinates


class IMetricProbe(ABC):
    """Abstract interface for a single-dimension metric collector."""

    # One of repo_quality.domain.models.DIMENSIONS
    dimension: str = ""

    @abstractmethod
    async def analyze(self, coordinates: RepositoryCoordinates) -> Any:
        """Collect the metrics fragment for a repository.

        Args:
            coordinates: Repository to inspect

        Returns:
            The dimension's metrics fragment

        Raises:
            ProbeError: If the metrics cannot be collected; callers
                substitute default_fragment()
        """
        pass

    @abstractmethod
    def default_fragment(self) -> Any:
        """Return the documented zero/false fragment used when analyze() fails."""
        pass
