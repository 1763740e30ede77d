"""
Batch loader orchestration.

Coordinates the flow: check source -> read -> decode -> store readiness ->
run lease -> chunked upsert. Every failure before the upsert ends the run
with one ERROR event (WARN when another run holds the lease) and never
raises to the caller, which is usually the scheduler.
"""

from pathlib import Path

from record_sync.config import DEFAULT_CHUNK_SIZE
from record_sync.core.errors import (
    LeaseUnavailable,
    RecordStoreError,
    SourceDecodeFailure,
    SourceNotFound,
    SourceReadFailure,
    StoreConnectFailure,
)
from record_sync.core.models import ReconcileSummary
from record_sync.observability.log_sink import LogSink
from record_sync.observability.logger import get_logger
from record_sync.observability.metrics import batch_size, last_run_timestamp_seconds, record_run_status
from record_sync.warehouse.lease import RunLease, make_holder_id
from record_sync.warehouse.record_store import RecordStore

from .readers import JsonBatchReader
from .upsert_engine import ChunkedUpsertEngine

logger = get_logger(__name__)


class BatchLoader:
    """
    Loads one batch file and reconciles it into the store.

    Flow:
    1. Confirm the source exists
    2. Read its raw content
    3. Decode it into records (all or nothing)
    4. Check the store is reachable
    5. Take the run lease, if one is configured
    6. Hand the records to the chunked upsert engine
    """

    def __init__(
        self,
        store: RecordStore,
        sink: LogSink,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        reader: JsonBatchReader | None = None,
        engine: ChunkedUpsertEngine | None = None,
        lease: RunLease | None = None,
    ):
        """
        Initialize batch loader.

        Args:
            store: Record store adapter
            sink: Log Sink for run events
            chunk_size: Records per chunk handed to the engine
            reader: Batch file reader (JSON by default)
            engine: Upsert engine (built over ``store`` and ``sink`` by default)
            lease: Optional run lease shared with other runs and processes
        """
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValueError(f"chunk_size must be a positive integer, got {chunk_size!r}")

        self.store = store
        self.sink = sink
        self.chunk_size = chunk_size
        self.reader = reader or JsonBatchReader()
        self.engine = engine or ChunkedUpsertEngine(store, sink)
        self.lease = lease

    def load_and_reconcile(self, source: str | Path) -> ReconcileSummary | None:
        """
        Process one batch file end to end.

        Args:
            source: Path to a JSON file holding an array of records

        Returns:
            The run summary, or None if the run stopped before the upsert
        """
        path = str(source)

        try:
            resolved = self.reader.check_exists(source)
        except SourceNotFound:
            self.sink.error(f"Data file not found: {path}")
            record_run_status("source_missing")
            return None

        try:
            raw = self.reader.read_raw(resolved)
        except SourceReadFailure as e:
            self.sink.error(f"Failed to read file: {path}, Error: {e.reason}")
            record_run_status("read_failed")
            return None
        self.sink.info(f"Read data from file: {path}")

        try:
            records = self.reader.decode(raw, resolved)
        except SourceDecodeFailure as e:
            self.sink.error(f"Failed to parse data from file: {path}, Error: {e.reason}")
            record_run_status("decode_failed")
            return None
        self.sink.info(f"Parsed data successfully from file: {path}")
        batch_size.observe(len(records))

        try:
            self.store.ping()
        except StoreConnectFailure as e:
            self.sink.error(f"Database connection error: {e}")
            record_run_status("store_unavailable")
            return None

        holder = make_holder_id()
        if self.lease is not None:
            try:
                self.lease.acquire(holder)
            except LeaseUnavailable as e:
                self.sink.warn(f"Previous sync run still in progress ({e}); skipping")
                record_run_status("lease_held")
                return None
            except RecordStoreError as e:
                self.sink.error(f"Could not acquire sync lease: {e}")
                record_run_status("lease_failed")
                return None

        try:
            summary = self.engine.reconcile_batch(records, self.chunk_size)
        finally:
            if self.lease is not None:
                self._release_lease(holder)

        record_run_status("completed")
        last_run_timestamp_seconds.set_to_current_time()
        logger.info(
            f"Batch complete for {path}: {summary.total_records} records in {summary.chunks} chunks "
            f"(created={summary.created}, updated={summary.updated}, failed={summary.failed})"
        )
        return summary

    def _release_lease(self, holder: str) -> None:
        try:
            self.lease.release(holder)
        except RecordStoreError as e:
            # The lease expires on its own after its TTL
            self.sink.error(f"Could not release sync lease: {e}")
