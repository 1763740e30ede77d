"""
DDL for the record store.

``entries`` holds reconciled records keyed by ``id``; ``sync_leases`` holds
the run lease that keeps overlapping batch runs apart.
"""

import psycopg

from record_sync.core.errors import StoreConnectFailure

from .connection import DatabaseConnectionPool

ENTRIES_DDL = """
    CREATE TABLE IF NOT EXISTS entries (
        id          BIGINT PRIMARY KEY,
        name        TEXT,
        score       DOUBLE PRECISION,
        age         INTEGER,
        city        TEXT,
        gender      TEXT,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

LEASES_DDL = """
    CREATE TABLE IF NOT EXISTS sync_leases (
        name         TEXT PRIMARY KEY,
        holder       TEXT NOT NULL,
        acquired_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        expires_at   TIMESTAMPTZ NOT NULL
    )
"""


class SchemaManager:
    """
    Creates and inspects the tables record-sync owns.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize schema manager.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def ensure_schema(self) -> None:
        """
        Create ``entries`` and ``sync_leases`` if they are missing.

        Raises:
            StoreConnectFailure: If the DDL cannot run, e.g. missing privileges
        """
        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(ENTRIES_DDL)
                    cur.execute(LEASES_DDL)
                conn.commit()
        except (psycopg.Error, RuntimeError) as e:
            raise StoreConnectFailure(f"schema setup failed: {e}") from e

    def table_exists(self, table_name: str) -> bool:
        """
        Check whether a table exists in the current schema.

        Args:
            table_name: Unqualified table name

        Returns:
            True if the table exists
        """
        result = self.pool.execute_query(
            "SELECT to_regclass(%s) IS NOT NULL AS present",
            (table_name,)
        )
        return bool(result and result[0]["present"])
