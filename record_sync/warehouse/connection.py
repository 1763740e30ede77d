"""
PostgreSQL connection pool management using psycopg3

One pool per process, configured from a single connection URI. Every pooled
connection carries a ``statement_timeout`` so a stalled statement fails
instead of blocking its chunk forever.
"""
import time
from contextlib import contextmanager

from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from record_sync.core.errors import StoreConnectFailure
from record_sync.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3

    Args:
        conninfo: Connection URI or libpq keyword string
        min_size: Minimum pool size
        max_size: Maximum pool size (should cover the engine's chunk size)
        timeout: Seconds to wait for a connection, also the connect timeout
        statement_timeout_ms: Per-statement bound in milliseconds, 0 disables it
    """

    def __init__(
        self,
        conninfo: str,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 10.0,
        statement_timeout_ms: int = 30000,
    ) -> None:
        if not conninfo:
            raise ValueError("A database connection URI is required (set DB_URL).")

        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.statement_timeout_ms = statement_timeout_ms

        self._pool: ConnectionPool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def _connection_kwargs(self) -> dict:
        kwargs = {
            "row_factory": dict_row,  # Return rows as dictionaries
            "connect_timeout": max(1, int(self.timeout)),
        }
        if self.statement_timeout_ms > 0:
            kwargs["options"] = f"-c statement_timeout={self.statement_timeout_ms}"
        return kwargs

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            StoreConnectFailure: If the pool cannot reach the database after all retries
        """
        if self._pool is not None:
            return

        last_error: Exception | None = None
        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs=self._connection_kwargs(),
                open=False,
            )
            try:
                pool.open(wait=True, timeout=self.timeout)
            except OperationalError as e:
                last_error = e
                pool.close()
                logger.warning(f"Database connection attempt {attempt}/{max_retries} failed: {e}")
                if attempt < max_retries:
                    time.sleep(retry_delay)
                continue
            self._pool = pool
            logger.info(f"Database pool open (min={self.min_size}, max={self.max_size})")
            return

        raise StoreConnectFailure(
            f"Failed to connect to database after {max_retries} attempts: {last_error}"
        ) from last_error

    def close(self) -> None:
        """Release every pooled connection; the pool can be reopened later."""
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.close()

    @contextmanager
    def get_connection(self):
        """
        Borrow a connection for one unit of work.

        The pool commits when the block exits cleanly and rolls back when it
        raises, so callers only commit explicitly for multi-statement work.

        Raises:
            RuntimeError: If the pool has not been opened
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        with self._pool.connection() as conn:
            yield conn

    def execute_query(self, query: str, params: tuple | dict | None = None) -> list[dict]:
        """
        Run a statement that returns rows (SELECT, or DML with RETURNING).

        Returns:
            One dict per row, keyed by column name
        """
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_command(self, command: str, params: tuple | dict | None = None) -> int:
        """
        Run a row-changing statement and commit it.

        Returns:
            Number of rows the statement touched
        """
        with self.get_connection() as conn:
            rowcount = conn.execute(command, params).rowcount
            conn.commit()
        return rowcount

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
