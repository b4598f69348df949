"""Tests for the PostgreSQL history storage with a mocked connection."""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
import pytest
import setup_postgres
from repo_quality.domain.models import (
    AnalysisHistory,
    AnalysisSnapshot,
    RepositoryCoordinates,
)
from repo_quality.infrastructure.postgres_history_storage import PostgresHistoryStorage


MODULE = "repo_quality.infrastructure.postgres_history_storage"

BREAKDOWN = {
    "code_quality": 70,
    "documentation": 80,
    "testing": 60,
    "community": 50,
    "security": 90,
    "dependencies": 100,
}
METRICS = {"lines_of_code": 1000, "contributors": 4, "vulnerabilities": 0, "test_coverage": None}


@pytest.fixture
def db():
    """Patched psycopg2.connect with its connection and shared cursor."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value = cursor
    with patch(f"{MODULE}.psycopg2.connect", return_value=conn) as connect:
        yield SimpleNamespace(connect=connect, conn=conn, cursor=cursor)


def test_connects_with_connection_string(db):
    PostgresHistoryStorage("dbname=repo_quality")

    db.connect.assert_called_once_with("dbname=repo_quality")
    assert db.conn.autocommit is False


def test_load_histories_groups_rows(db):
    """Test rows are grouped per repository, oldest first."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db.cursor.__iter__.return_value = iter([
        ("facebook/react", "facebook", "react", start, 70, BREAKDOWN, METRICS),
        ("facebook/react", "facebook", "react", start + timedelta(days=1), 75, BREAKDOWN, METRICS),
        ("vercel/next.js", "vercel", "next.js", start, 80, BREAKDOWN, METRICS),
    ])

    histories = PostgresHistoryStorage("dbname=test").load_histories()

    assert [h.repository_id for h in histories] == ["facebook/react", "vercel/next.js"]
    react = histories[0]
    assert react.repo == "react"
    assert [s.overall_score for s in react.analyses] == [70, 75]
    assert react.analyses[0].breakdown.security == 90
    assert react.analyses[0].metrics.lines_of_code == 1000
    db.cursor.close.assert_called_once()


def test_save_history_replaces_rows(db, make_result):
    """Test saving deletes the old rows and inserts the full window in one commit."""
    history = AnalysisHistory.for_repository(RepositoryCoordinates("facebook", "react"))
    for index in range(2):
        history = history.append(AnalysisSnapshot.from_result(make_result(overall=60 + index, index=index)))

    storage = PostgresHistoryStorage("dbname=test")
    with patch(f"{MODULE}.execute_values") as execute_values:
        storage.save_history(history)

    db.cursor.execute.assert_called_once_with(
        "DELETE FROM analysis_snapshots WHERE repository_id = %s",
        ("facebook/react",)
    )
    rows = execute_values.call_args.args[2]
    assert [row[4] for row in rows] == [60, 61]
    assert rows[0][:3] == ("facebook/react", "facebook", "react")
    db.conn.commit.assert_called_once()


def test_save_history_rolls_back_on_error(db, make_result):
    history = AnalysisHistory.for_repository(RepositoryCoordinates("facebook", "react"))
    history = history.append(AnalysisSnapshot.from_result(make_result(overall=60)))
    storage = PostgresHistoryStorage("dbname=test")

    with patch(f"{MODULE}.execute_values", side_effect=RuntimeError("insert failed")):
        with pytest.raises(RuntimeError):
            storage.save_history(history)

    db.conn.rollback.assert_called_once()
    db.conn.commit.assert_not_called()


def test_delete_and_clear(db):
    storage = PostgresHistoryStorage("dbname=test")

    storage.delete_history("facebook/react")
    storage.clear()

    executed = [c.args[0] for c in db.cursor.execute.call_args_list]
    assert executed == [
        "DELETE FROM analysis_snapshots WHERE repository_id = %s",
        "DELETE FROM analysis_snapshots",
    ]
    assert db.conn.commit.call_count == 2


def test_close(db):
    PostgresHistoryStorage("dbname=test").close()

    db.conn.close.assert_called_once()


def test_schema_statements_applied_in_one_transaction():
    conn = MagicMock()

    setup_postgres.apply_statements(conn, setup_postgres.DROP_STATEMENTS + setup_postgres.SCHEMA_STATEMENTS)

    executed = [c.args[0] for c in conn.cursor.return_value.execute.call_args_list]
    assert executed[0] == "DROP TABLE IF EXISTS analysis_snapshots"
    assert "CREATE TABLE IF NOT EXISTS analysis_snapshots" in executed[1]
    conn.commit.assert_called_once()


def test_schema_failure_rolls_back():
    conn = MagicMock()
    conn.cursor.return_value.execute.side_effect = RuntimeError("permission denied")

    with pytest.raises(RuntimeError):
        setup_postgres.apply_statements(conn, setup_postgres.SCHEMA_STATEMENTS)

    conn.rollback.assert_called_once()
    conn.cursor.return_value.close.assert_called_once()
