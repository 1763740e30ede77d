"""
Record store adapters.

The upsert engine only needs three primitives: find by key, create, and
update by key. ``PostgresRecordStore`` implements them against the
``entries`` table. ``create`` is a plain INSERT so the primary key, not the
caller, arbitrates between two runs that both saw an id as absent.
"""

from typing import Protocol

import psycopg

from record_sync.core.errors import RecordStoreError, StoreConnectFailure
from record_sync.core.models import Record

from .connection import DatabaseConnectionPool
from .schema_mgmt import SchemaManager


class RecordStore(Protocol):
    """Persistence primitives used by the upsert engine and batch loader."""

    def find_by_key(self, record_id: int) -> Record | None: ...

    def create(self, record: Record) -> None: ...

    def update_by_key(self, record_id: int, record: Record) -> None: ...

    def ping(self) -> None: ...


class PostgresRecordStore:
    """
    ``RecordStore`` backed by PostgreSQL through the shared connection pool.

    Every failure is re-raised as ``RecordStoreError`` carrying the driver's
    message, so callers only have to know one exception type.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize the store.

        Args:
            pool: Database connection pool
        """
        self.pool = pool
        self._schema_ready = False

    def find_by_key(self, record_id: int) -> Record | None:
        """
        Look up a record by id.

        Args:
            record_id: Business key

        Returns:
            The stored record, timestamps included, or None when absent
        """
        query = """
            SELECT id, name, score, age, city, gender, created_at, updated_at
            FROM entries
            WHERE id = %s
        """
        try:
            rows = self.pool.execute_query(query, (record_id,))
        except (psycopg.Error, RuntimeError) as e:
            raise RecordStoreError(f"lookup of id={record_id} failed: {e}") from e
        return Record(**rows[0]) if rows else None

    def create(self, record: Record) -> None:
        """
        Insert a new record.

        Raises:
            RecordStoreError: On any failure, including an id that already exists
        """
        command = """
            INSERT INTO entries (id, name, score, age, city, gender)
            VALUES (%(id)s, %(name)s, %(score)s, %(age)s, %(city)s, %(gender)s)
        """
        try:
            self.pool.execute_command(command, record.payload())
        except psycopg.errors.UniqueViolation as e:
            raise RecordStoreError(f"id={record.id} already exists") from e
        except (psycopg.Error, RuntimeError) as e:
            raise RecordStoreError(f"insert of id={record.id} failed: {e}") from e

    def update_by_key(self, record_id: int, record: Record) -> None:
        """
        Replace every payload field of the record stored under ``record_id``.

        Fields missing from ``record`` are written as NULL.

        Raises:
            RecordStoreError: On failure, or when no row has that id
        """
        command = """
            UPDATE entries SET
                id = %(id)s,
                name = %(name)s,
                score = %(score)s,
                age = %(age)s,
                city = %(city)s,
                gender = %(gender)s,
                updated_at = now()
            WHERE id = %(key)s
        """
        params = {**record.payload(), "key": record_id}
        try:
            rowcount = self.pool.execute_command(command, params)
        except (psycopg.Error, RuntimeError) as e:
            raise RecordStoreError(f"update of id={record_id} failed: {e}") from e
        if rowcount == 0:
            raise RecordStoreError(f"no entry with id={record_id} to update")

    def ping(self) -> None:
        """
        Make sure the store is reachable, opening the pool if an earlier
        connect attempt failed. The tables are created on the first ping that
        gets through, and again on every ping until that succeeds.

        Raises:
            StoreConnectFailure: If the database cannot be reached or the
                tables cannot be created
        """
        try:
            if not self.pool.is_open:
                self.pool.open(max_retries=1)
        except (psycopg.Error, RuntimeError) as e:
            raise StoreConnectFailure(f"store ping failed: {e}") from e

        if not self._schema_ready:
            SchemaManager(self.pool).ensure_schema()
            self._schema_ready = True

        try:
            self.pool.execute_query("SELECT 1 AS ok")
        except (psycopg.Error, RuntimeError) as e:
            raise StoreConnectFailure(f"store ping failed: {e}") from e
