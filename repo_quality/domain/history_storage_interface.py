"""History storage interface (port) for snapshot persistence.

This is the port in hexagonal architecture that the infrastructure layer implements.
"""
from abc import ABC, abstractmethod
from typing import List
from repo_quality.domain.models import AnalysisHistory


class IHistoryStorage(ABC):
    """Abstract interface for analysis history storage."""

    @abstractmethod
    def load_histories(self) -> List[AnalysisHistory]:
        """Load every persisted repository history."""
        pass

    @abstractmethod
    def save_history(self, history: AnalysisHistory) -> None:
        """Save a repository history, replacing any previously stored version.

        Args:
            history: The complete, already bounded history of one repository
        """
        pass

    @abstractmethod
    def delete_history(self, repository_id: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored history."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close any open connections."""
        pass
