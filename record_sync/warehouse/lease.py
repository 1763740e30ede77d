"""
Run lease keeping overlapping batch runs apart.

A lease is a row in ``sync_leases``. Acquiring it is a single upsert that
only takes over a row whose ``expires_at`` has passed, so a crashed holder
blocks other runs for at most the TTL.
"""

import os
import socket
import uuid

import psycopg

from record_sync.core.errors import LeaseUnavailable, RecordStoreError
from record_sync.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

DEFAULT_LEASE_NAME = "batch-sync"


def make_holder_id() -> str:
    """Identifier unique to this process and attempt."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class RunLease:
    """
    Named, time-limited lease stored in PostgreSQL.

    Args:
        pool: Database connection pool
        name: Lease name; runs sharing a name exclude each other
        ttl_seconds: How long an unreleased lease stays valid
    """

    def __init__(
        self,
        pool: DatabaseConnectionPool,
        name: str = DEFAULT_LEASE_NAME,
        ttl_seconds: int = 3600,
    ):
        self.pool = pool
        self.name = name
        self.ttl_seconds = ttl_seconds

    def acquire(self, holder: str) -> None:
        """
        Take the lease for ``holder``.

        Raises:
            LeaseUnavailable: If another holder has an unexpired lease
            RecordStoreError: If the lease table cannot be reached
        """
        command = """
            INSERT INTO sync_leases (name, holder, acquired_at, expires_at)
            VALUES (%(name)s, %(holder)s, now(), now() + %(ttl)s * interval '1 second')
            ON CONFLICT (name) DO UPDATE SET
                holder = EXCLUDED.holder,
                acquired_at = EXCLUDED.acquired_at,
                expires_at = EXCLUDED.expires_at
            WHERE sync_leases.expires_at < now()
            RETURNING holder
        """
        params = {"name": self.name, "holder": holder, "ttl": self.ttl_seconds}
        try:
            rows = self.pool.execute_query(command, params)
        except (psycopg.Error, RuntimeError) as e:
            raise RecordStoreError(f"lease {self.name!r} acquire failed: {e}") from e

        if not rows:
            raise LeaseUnavailable(self.name, self.current_holder())
        logger.debug(f"Lease {self.name!r} acquired by {holder}")

    def release(self, holder: str) -> None:
        """Drop the lease if ``holder`` still owns it."""
        try:
            self.pool.execute_command(
                "DELETE FROM sync_leases WHERE name = %s AND holder = %s",
                (self.name, holder)
            )
        except (psycopg.Error, RuntimeError) as e:
            raise RecordStoreError(f"lease {self.name!r} release failed: {e}") from e
        logger.debug(f"Lease {self.name!r} released by {holder}")

    def current_holder(self) -> str | None:
        """Holder of the unexpired lease, if any."""
        try:
            rows = self.pool.execute_query(
                "SELECT holder FROM sync_leases WHERE name = %s AND expires_at >= now()",
                (self.name,)
            )
        except (psycopg.Error, RuntimeError):
            return None
        return rows[0]["holder"] if rows else None
