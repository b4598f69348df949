"""History and trend tracking for repository analyses."""
import logging
from typing import Dict, List, Optional
from repo_quality.application.scoring_engine import round_half_up
from repo_quality.domain.history_storage_interface import IHistoryStorage
from repo_quality.domain.models import (
    HISTORY_LIMIT,
    AnalysisHistory,
    AnalysisResult,
    AnalysisSnapshot,
    HistoryStatistics,
    RepositoryCoordinates,
    ScorePoint,
    Trend,
)


logger = logging.getLogger(__name__)

TREND_THRESHOLD_PERCENT = 1.0
LONG_RUN_THRESHOLD_PERCENT = 2.0


def calculate_trend(dimension: str, current: float, previous: float) -> Trend:
    """Classify the change between two consecutive values.

    A previous value of zero yields a stable trend with no change.
    """
    if previous == 0:
        return Trend(dimension=dimension, current=current, previous=previous, change=0.0, trend="stable")

    change_percent = (current - previous) / abs(previous) * 100

    trend = "stable"
    if change_percent > TREND_THRESHOLD_PERCENT:
        trend = "up"
    elif change_percent < -TREND_THRESHOLD_PERCENT:
        trend = "down"

    return Trend(
        dimension=dimension,
        current=current,
        previous=previous,
        change=round(change_percent, 2),
        trend=trend
    )


def history_key(owner: str, repo: str) -> str:
    return RepositoryCoordinates(owner, repo).full_name.lower()


class HistoryService:
    """Keeps a bounded snapshot timeline per repository.

    Histories live in memory and are written through to the optional
    storage on every record. Storage failures are logged and never
    interrupt the in-memory history. Lookups ignore the case of the owner
    and repository name.
    """

    def __init__(self, storage: Optional[IHistoryStorage] = None, limit: int = HISTORY_LIMIT):
        """Initialize history service.

        Args:
            storage: Persistence backend; histories are loaded from it on startup
            limit: Maximum snapshots retained per repository
        """
        self._storage = storage
        self._limit = limit
        self._histories: Dict[str, AnalysisHistory] = {}

        if self._storage is not None:
            self._load_histories()

    def record_analysis(self, result: AnalysisResult) -> AnalysisHistory:
        """Append a snapshot of the result to its repository's history.

        Args:
            result: A completed analysis

        Returns:
            The updated history
        """
        coordinates = result.coordinates
        key = history_key(coordinates.owner, coordinates.name)
        history = self._histories.get(key)
        if history is None:
            history = AnalysisHistory.for_repository(coordinates)

        history = history.append(AnalysisSnapshot.from_result(result), limit=self._limit)
        self._histories[key] = history

        if self._storage is not None:
            try:
                self._storage.save_history(history)
            except Exception as e:
                logger.warning(f"Failed to persist history for {history.repository_id}: {e}")

        return history

    def get_history(self, owner: str, repo: str) -> Optional[AnalysisHistory]:
        return self._histories.get(history_key(owner, repo))

    def get_trends(self, owner: str, repo: str) -> List[Trend]:
        """Compare the two most recent snapshots, overall and per dimension.

        Returns:
            One Trend for the overall score followed by one per dimension,
            or an empty list with fewer than two snapshots
        """
        history = self.get_history(owner, repo)
        if history is None or len(history.analyses) < 2:
            return []

        previous, current = history.analyses[-2], history.analyses[-1]

        trends = [calculate_trend("overall", current.overall_score, previous.overall_score)]
        previous_breakdown = previous.breakdown.to_dict()
        for dimension, score in current.breakdown.items():
            trends.append(calculate_trend(dimension, score, previous_breakdown[dimension]))

        return trends

    def get_score_progression(self, owner: str, repo: str) -> List[ScorePoint]:
        history = self.get_history(owner, repo)
        if history is None:
            return []
        return [ScorePoint(date=snapshot.timestamp, score=snapshot.overall_score)
                for snapshot in history.analyses]

    def get_statistics(self, owner: str, repo: str) -> HistoryStatistics:
        """Summarize the retained window of overall scores.

        The long-run trend compares the average of the second half of the
        window against the first half.
        """
        history = self.get_history(owner, repo)
        if history is None or not history.analyses:
            return HistoryStatistics(
                total_analyses=0,
                average_score=0,
                highest_score=0,
                lowest_score=0,
                trend="stable"
            )

        scores = [snapshot.overall_score for snapshot in history.analyses]
        average = sum(scores) / len(scores)

        return HistoryStatistics(
            total_analyses=len(scores),
            average_score=round_half_up(average),
            highest_score=max(scores),
            lowest_score=min(scores),
            trend=self._long_run_trend(scores)
        )

    def clear_history(self, owner: str, repo: str) -> None:
        history = self._histories.pop(history_key(owner, repo), None)
        # Storage is keyed by the name as first recorded
        repository_id = history.repository_id if history else RepositoryCoordinates(owner, repo).full_name

        if self._storage is not None:
            try:
                self._storage.delete_history(repository_id)
            except Exception as e:
                logger.warning(f"Failed to delete history for {repository_id}: {e}")

    def clear_all_history(self) -> None:
        self._histories.clear()

        if self._storage is not None:
            try:
                self._storage.clear()
            except Exception as e:
                logger.warning(f"Failed to clear history storage: {e}")

    def close(self) -> None:
        if self._storage is not None:
            self._storage.close()

    @staticmethod
    def _long_run_trend(scores: List[int]) -> str:
        if len(scores) < 2:
            return "stable"

        midpoint = len(scores) // 2
        first_half = scores[:midpoint]
        second_half = scores[midpoint:]

        first_average = sum(first_half) / len(first_half)
        second_average = sum(second_half) / len(second_half)
        if first_average == 0:
            return "stable"

        change = (second_average - first_average) / first_average * 100
        if change > LONG_RUN_THRESHOLD_PERCENT:
            return "improving"
        if change < -LONG_RUN_THRESHOLD_PERCENT:
            return "declining"
        return "stable"

    def _load_histories(self) -> None:
        try:
            histories = self._storage.load_histories()
        except Exception as e:
            logger.warning(f"Failed to load histories: {e}")
            return

        for history in histories:
            self._histories[history.repository_id.lower()] = history
        logger.info(f"Loaded {len(histories)} repository histories")
