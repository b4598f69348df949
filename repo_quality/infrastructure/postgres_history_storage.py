"""PostgreSQL implementation of history storage."""
import logging
from typing import Dict, List
import psycopg2
from psycopg2.extras import Json, execute_values
from repo_quality.domain.history_storage_interface import IHistoryStorage
from repo_quality.domain.models import (
    AnalysisHistory,
    AnalysisSnapshot,
    ScoreBreakdown,
    SnapshotMetrics,
)


logger = logging.getLogger(__name__)


class PostgresHistoryStorage(IHistoryStorage):
    """PostgreSQL implementation of history storage.

    One row per snapshot in ``analysis_snapshots``. Saving a history
    replaces that repository's rows in a single transaction, so the
    table never holds more than the bounded window per repository.
    """

    def __init__(self, connection_string: str):
        """Initialize PostgreSQL connection.

        Args:
            connection_string: PostgreSQL connection string
        """
        self._connection_string = connection_string
        self._conn = psycopg2.connect(connection_string)
        self._conn.autocommit = False
        logger.info("Connected to PostgreSQL database")

    def load_histories(self) -> List[AnalysisHistory]:
        """Load every repository history, snapshots oldest first.

        Returns:
            List of AnalysisHistory entities
        """
        cursor = self._conn.cursor()
        try:
            cursor.execute("""
                SELECT repository_id, owner, name, analyzed_at, overall_score, breakdown, metrics
                FROM analysis_snapshots
                ORDER BY repository_id, analyzed_at, id
            """)

            grouped: Dict[str, dict] = {}
            for repository_id, owner, name, analyzed_at, overall_score, breakdown, metrics in cursor:
                entry = grouped.setdefault(
                    repository_id,
                    {"owner": owner, "repo": name, "analyses": []}
                )
                entry["analyses"].append(AnalysisSnapshot(
                    timestamp=analyzed_at,
                    overall_score=overall_score,
                    breakdown=ScoreBreakdown.from_dict(breakdown),
                    metrics=SnapshotMetrics(**metrics)
                ))

            return [
                AnalysisHistory(
                    repository_id=repository_id,
                    owner=entry["owner"],
                    repo=entry["repo"],
                    analyses=tuple(entry["analyses"])
                )
                for repository_id, entry in grouped.items()
            ]
        finally:
            cursor.close()

    def save_history(self, history: AnalysisHistory) -> None:
        """Replace the stored snapshots of one repository.

        Args:
            history: The complete, already bounded history
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                "DELETE FROM analysis_snapshots WHERE repository_id = %s",
                (history.repository_id,)
            )

            values = [
                (
                    history.repository_id,
                    history.owner,
                    history.repo,
                    snapshot.timestamp,
                    snapshot.overall_score,
                    Json(snapshot.breakdown.to_dict()),
                    Json(snapshot.to_dict()["metrics"])
                )
                for snapshot in history.analyses
            ]

            if values:
                execute_values(
                    cursor,
                    """
                    INSERT INTO analysis_snapshots
                        (repository_id, owner, name, analyzed_at, overall_score, breakdown, metrics)
                    VALUES %s
                    """,
                    values
                )

            self._conn.commit()
            logger.debug(f"Saved {len(values)} snapshots for {history.repository_id}")

        except Exception as e:
            self._conn.rollback()
            logger.error(f"Error saving history for {history.repository_id}: {e}")
            raise
        finally:
            cursor.close()

    def delete_history(self, repository_id: str) -> None:
        self._execute_and_commit(
            "DELETE FROM analysis_snapshots WHERE repository_id = %s",
            (repository_id,)
        )

    def clear(self) -> None:
        self._execute_and_commit("DELETE FROM analysis_snapshots")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            logger.info("Closed PostgreSQL connection")

    def _execute_and_commit(self, query: str, params: tuple = ()) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        finally:
            cursor.close()
