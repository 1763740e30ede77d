"""
Pytest configuration and fixtures for record-sync tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import json
import threading
import time
from contextlib import nullcontext
from pathlib import Path
from typing import Generator

import psycopg
from psycopg.rows import dict_row
import pytest
from testcontainers.postgres import PostgresContainer

from record_sync.core.errors import RecordStoreError, StoreConnectFailure
from record_sync.core.models import Record
from record_sync.observability.log_sink import LogSink
from record_sync.warehouse.connection import DatabaseConnectionPool
from record_sync.warehouse.schema_mgmt import SchemaManager


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IN-MEMORY STORE
# =======================

class FakeRecordStore:
    """
    Thread-safe in-memory RecordStore.

    Args:
        fail_on: Map of record id to the operation that should raise for it
            ("find", "create" or "update")
        delay: Seconds every store call sleeps, to widen concurrency windows
    """

    def __init__(self, fail_on: dict[int, str] | None = None, delay: float = 0.0):
        self.rows: dict[int, Record] = {}
        self.fail_on = dict(fail_on or {})
        self.delay = delay
        self.ping_error: Exception | None = None
        self.calls: list[tuple[str, int]] = []
        self.pings = 0

        # ids inside a store call when each call started
        self.overlaps: list[tuple[int, frozenset]] = []
        self.max_in_flight = 0

        self._lock = threading.Lock()
        self._in_flight: set[int] = set()

    def _enter(self, op: str, record_id: int) -> None:
        with self._lock:
            self.calls.append((op, record_id))
            self._in_flight.add(record_id)
            self.overlaps.append((record_id, frozenset(self._in_flight)))
            self.max_in_flight = max(self.max_in_flight, len(self._in_flight))
        if self.delay:
            time.sleep(self.delay)

    def _exit(self, record_id: int) -> None:
        with self._lock:
            self._in_flight.discard(record_id)

    def _maybe_fail(self, op: str, record_id: int) -> None:
        if self.fail_on.get(record_id) == op:
            raise RecordStoreError(f"forced {op} failure for id={record_id}")

    def find_by_key(self, record_id: int) -> Record | None:
        self._enter("find", record_id)
        try:
            self._maybe_fail("find", record_id)
            with self._lock:
                return self.rows.get(record_id)
        finally:
            self._exit(record_id)

    def create(self, record: Record) -> None:
        self._enter("create", record.id)
        try:
            self._maybe_fail("create", record.id)
            with self._lock:
                if record.id in self.rows:
                    raise RecordStoreError(f"id={record.id} already exists")
                self.rows[record.id] = Record(**record.payload())
        finally:
            self._exit(record.id)

    def update_by_key(self, record_id: int, record: Record) -> None:
        self._enter("update", record_id)
        try:
            self._maybe_fail("update", record_id)
            with self._lock:
                if record_id not in self.rows:
                    raise RecordStoreError(f"no entry with id={record_id} to update")
                self.rows[record_id] = Record(**record.payload())
        finally:
            self._exit(record_id)

    def ping(self) -> None:
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error

    def writes(self) -> list[tuple[str, int]]:
        """create/update calls, in the order they happened"""
        return [call for call in self.calls if call[0] in ("create", "update")]


class FakeLease:
    """RunLease stand-in recording acquire/release calls."""

    def __init__(self, acquire_error: Exception | None = None):
        self.acquire_error = acquire_error
        self.acquired: list[str] = []
        self.released: list[str] = []

    def acquire(self, holder: str) -> None:
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired.append(holder)

    def release(self, holder: str) -> None:
        self.released.append(holder)


@pytest.fixture
def store() -> FakeRecordStore:
    """Empty in-memory record store"""
    return FakeRecordStore()


@pytest.fixture
def make_store():
    """FakeRecordStore factory, for tests that need failures or delays"""
    return FakeRecordStore


@pytest.fixture
def make_lease():
    """FakeLease factory"""
    return FakeLease


@pytest.fixture
def unreachable_store() -> FakeRecordStore:
    """Store whose readiness check always fails"""
    fake = FakeRecordStore()
    fake.ping_error = StoreConnectFailure("store ping failed: connection refused")
    return fake


# =======================
# IN-MEMORY POOL
# =======================

class FakeCursor:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        if self.pool.ddl_errors > 0:
            self.pool.ddl_errors -= 1
            raise psycopg.errors.InsufficientPrivilege("permission denied for schema public")
        self.pool.statements.append(" ".join(query.split()))


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    def cursor(self):
        return FakeCursor(self.pool)

    def commit(self):
        self.pool.commits += 1


class FakePool:
    """
    DatabaseConnectionPool stand-in for schema setup and readiness checks.

    Args:
        open_error: Raised by every ``open`` call when set
        ddl_errors: Number of statements that fail with a privilege error
            before statements start succeeding
    """

    def __init__(self, open_error: Exception | None = None, ddl_errors: int = 0):
        self.open_error = open_error
        self.ddl_errors = ddl_errors
        self.is_open = False
        self.open_calls = 0
        self.closed = False
        self.commits = 0
        self.statements: list[str] = []

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error
        self.is_open = True

    def close(self) -> None:
        self.is_open = False
        self.closed = True

    def get_connection(self):
        if not self.is_open:
            raise RuntimeError("Connection pool is not open. Call open() first.")
        return nullcontext(FakeConnection(self))

    def execute_query(self, query, params=None):
        return [{"ok": 1}]


@pytest.fixture
def make_pool():
    """FakePool factory"""
    return FakePool


# =======================
# LOG SINK FIXTURES
# =======================

@pytest.fixture
def log_dir(tmp_path) -> Path:
    """
    Log directory that does not exist yet

    Returns:
        Path under pytest's tmp_path
    """
    return tmp_path / "logs"


@pytest.fixture
def sink(log_dir) -> Generator[LogSink, None, None]:
    """
    Log Sink writing to a temporary directory, without console output

    Yields:
        LogSink instance, closed after the test
    """
    log_sink = LogSink(log_dir, console=False)
    yield log_sink
    log_sink.close()


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture
def write_batch(tmp_path):
    """
    Factory writing a batch file and returning its path

    Accepts either a Python object (dumped as JSON) or raw text.
    """

    def _write(content, name: str = "batch.json") -> Path:
        path = tmp_path / name
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(json.dumps(content), encoding="utf-8")
        return path

    return _write


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_datawarehouse"
    ) as postgres:
        yield postgres


@pytest.fixture(scope="session")
def db_url(postgres_container) -> str:
    """
    libpq connection URI for the test container

    Returns:
        postgresql:// URI usable by psycopg
    """
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    return f"postgresql://test_pipeline:test_password@{host}:{port}/test_datawarehouse"


@pytest.fixture(scope="function")
def pool(db_url) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open pool over a clean schema

    Yields:
        DatabaseConnectionPool with empty ``entries`` and ``sync_leases`` tables
    """
    db_pool = DatabaseConnectionPool(db_url, min_size=1, max_size=12, statement_timeout_ms=5000)
    db_pool.open()
    SchemaManager(db_pool).ensure_schema()
    db_pool.execute_command("TRUNCATE TABLE entries, sync_leases")
    yield db_pool
    db_pool.close()


@pytest.fixture(scope="function")
def db_connection(db_url) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a raw database connection for assertions

    Yields:
        psycopg Connection object
    """
    with psycopg.connect(db_url, row_factory=dict_row) as conn:
        yield conn
        conn.rollback()
