"""
Chunked concurrent upsert of decoded records.

Chunks run strictly one after another; the records of one chunk run
concurrently on a thread pool sized to the chunk, so at most ``chunk_size``
reconciles are in flight. Records in the same chunk that share an id are
applied in input order by a single worker, so a later duplicate always sees
the earlier one's write.
"""

import math
import time
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, wait

from record_sync.core.errors import RecordReconcileFailure
from record_sync.core.models import ReconcileSummary, Record
from record_sync.observability.log_sink import LogSink
from record_sync.observability.metrics import chunk_duration_seconds, record_outcome
from record_sync.warehouse.record_store import RecordStore

CREATED = "created"
UPDATED = "updated"
FAILED = "failed"


def iter_chunks(records: Sequence[Record], chunk_size: int) -> Iterator[list[Record]]:
    """Contiguous, order-preserving slices of at most ``chunk_size`` records."""
    for start in range(0, len(records), chunk_size):
        yield list(records[start:start + chunk_size])


def group_by_key(chunk: Sequence[Record]) -> list[list[Record]]:
    """Group a chunk by id, keeping first-seen order of ids and input order within each id."""
    groups: dict[int, list[Record]] = {}
    for record in chunk:
        groups.setdefault(record.id, []).append(record)
    return list(groups.values())


class ChunkedUpsertEngine:
    """
    Reconciles batches of records into a ``RecordStore``.

    Each record is looked up by id, then created or fully replaced. Outcomes
    go to the Log Sink as SUCCESS or ERROR events; a failed record never stops
    its chunk or the batch.

    Args:
        store: Record store adapter
        sink: Log Sink receiving progress and per-record events
    """

    def __init__(self, store: RecordStore, sink: LogSink):
        self.store = store
        self.sink = sink

    def reconcile_batch(self, records: Sequence[Record], chunk_size: int) -> ReconcileSummary:
        """
        Reconcile ``records`` chunk by chunk.

        Args:
            records: Decoded records, in source order
            chunk_size: Maximum records per chunk, and so per concurrent phase

        Returns:
            Counts of created, updated and failed records

        Raises:
            ValueError: If chunk_size is not a positive integer
        """
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValueError(f"chunk_size must be a positive integer, got {chunk_size!r}")

        records = list(records)
        summary = ReconcileSummary(total_records=len(records))
        if not records:
            return summary

        total_chunks = math.ceil(len(records) / chunk_size)
        with ThreadPoolExecutor(max_workers=chunk_size, thread_name_prefix="reconcile") as executor:
            for index, chunk in enumerate(iter_chunks(records, chunk_size), start=1):
                self.sink.info(f"Processing chunk: {index} / {total_chunks}")

                started = time.perf_counter()
                futures = [executor.submit(self._reconcile_group, group) for group in group_by_key(chunk)]
                wait(futures)
                chunk_duration_seconds.observe(time.perf_counter() - started)

                for future in futures:
                    for outcome in future.result():
                        if outcome == CREATED:
                            summary.created += 1
                        elif outcome == UPDATED:
                            summary.updated += 1
                        else:
                            summary.failed += 1
                summary.chunks += 1

        return summary

    def _reconcile_group(self, group: list[Record]) -> list[str]:
        return [self._reconcile_record(record) for record in group]

    def _reconcile_record(self, record: Record) -> str:
        payload = record.to_log_json()
        try:
            outcome = self._upsert(record)
        except RecordReconcileFailure as failure:
            self.sink.error(f"Error processing data: {payload}, Error: {failure.reason}")
            record_outcome(FAILED)
            return FAILED

        if outcome == CREATED:
            self.sink.success(f"New entry added: {payload}")
        else:
            self.sink.success(f"Existing entry updated: {payload}")
        record_outcome(outcome)
        return outcome

    def _upsert(self, record: Record) -> str:
        stage = "lookup"
        try:
            existing = self.store.find_by_key(record.id)
            if existing is None:
                stage = "create"
                self.store.create(record)
                return CREATED
            stage = "update"
            self.store.update_by_key(record.id, record)
            return UPDATED
        except Exception as exc:
            # Any failure, whatever the store raised, is confined to this record
            raise RecordReconcileFailure(
                record.id, f"{stage} failed: {type(exc).__name__}: {exc}"
            ) from exc
