"""Create the PostgreSQL schema for the analysis history backend.

Run once before using HISTORY_BACKEND=postgres. Pass --reset to drop
existing snapshots and start over.
"""
import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence
import psycopg2
from dotenv import load_dotenv
from repo_quality.config import get_connection_string


logger = logging.getLogger(__name__)

# One row per history snapshot. Breakdown and raw metrics are JSONB so a
# new dimension needs no migration.
SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS analysis_snapshots (
        id SERIAL PRIMARY KEY,
        repository_id VARCHAR(511) NOT NULL,
        owner VARCHAR(255) NOT NULL,
        name VARCHAR(255) NOT NULL,
        analyzed_at TIMESTAMPTZ NOT NULL,
        overall_score SMALLINT NOT NULL CHECK (overall_score BETWEEN 0 AND 100),
        breakdown JSONB NOT NULL,
        metrics JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # Serves the ordered load and the per-repository replace
    """
    CREATE INDEX IF NOT EXISTS idx_analysis_snapshots_repository
    ON analysis_snapshots(repository_id, analyzed_at)
    """,
)

DROP_STATEMENTS = ("DROP TABLE IF EXISTS analysis_snapshots",)


def apply_statements(conn, statements: Sequence[str]) -> None:
    """Run the statements in a single transaction.

    Raises:
        psycopg2.Error: After rolling back, if any statement fails
    """
    cursor = conn.cursor()
    try:
        for statement in statements:
            cursor.execute(statement)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create the analysis history schema")
    parser.add_argument("--reset", action="store_true", help="Drop stored snapshots first")
    args = parser.parse_args(argv)

    load_dotenv('.env') or load_dotenv('env')
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    statements = SCHEMA_STATEMENTS
    if args.reset:
        logger.warning("Dropping existing analysis snapshots")
        statements = DROP_STATEMENTS + SCHEMA_STATEMENTS

    try:
        conn = psycopg2.connect(get_connection_string(os.environ))
    except psycopg2.Error as e:
        logger.error(f"Could not connect to PostgreSQL: {e}")
        return 1

    try:
        apply_statements(conn, statements)
    except psycopg2.Error as e:
        logger.error(f"Schema setup failed: {e}")
        return 1
    finally:
        conn.close()

    logger.info("analysis_snapshots schema is ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
