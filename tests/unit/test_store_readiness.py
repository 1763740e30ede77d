"""
Unit tests for the record store's readiness check, against an in-memory pool.
"""
import pytest

from record_sync.core.errors import StoreConnectFailure
from record_sync.warehouse.record_store import PostgresRecordStore


class TestPing:
    """Tests for PostgresRecordStore.ping"""

    def test_opens_pool_and_creates_schema(self, make_pool):
        pool = make_pool()
        store = PostgresRecordStore(pool)

        store.ping()

        assert pool.is_open
        assert len(pool.statements) == 2

    def test_schema_created_once(self, make_pool):
        pool = make_pool()
        store = PostgresRecordStore(pool)

        store.ping()
        store.ping()

        assert len(pool.statements) == 2
        assert pool.open_calls == 1

    def test_schema_retried_after_failure(self, make_pool):
        """Test that a failed table setup is attempted again on the next ping"""
        pool = make_pool(ddl_errors=1)
        store = PostgresRecordStore(pool)

        with pytest.raises(StoreConnectFailure, match="schema setup failed: permission denied"):
            store.ping()
        assert pool.is_open

        store.ping()

        assert pool.statements[0].startswith("CREATE TABLE IF NOT EXISTS entries")
        assert pool.statements[1].startswith("CREATE TABLE IF NOT EXISTS sync_leases")
        assert pool.open_calls == 1

    def test_open_failure(self, make_pool):
        pool = make_pool(open_error=StoreConnectFailure("Failed to connect to database after 1 attempts: refused"))

        with pytest.raises(StoreConnectFailure, match="after 1 attempts"):
            PostgresRecordStore(pool).ping()
        assert pool.statements == []
