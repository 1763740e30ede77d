"""
Prometheus metrics for record-sync

Counters and histograms for batch runs, per-record outcomes, chunk timing
and Log Sink traffic, all registered on a private registry that the
dashboard exposes at ``/metrics``.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# BATCH METRICS
# =======================

# status: completed, source_missing, read_failed, decode_failed,
# store_unavailable, lease_held, lease_failed
batch_runs_total = Counter(
    name="record_sync_batch_runs_total",
    documentation="Batch loader runs by final status",
    labelnames=["status"],
    registry=REGISTRY,
)

records_reconciled_total = Counter(
    name="record_sync_records_reconciled_total",
    documentation="Per-record reconcile outcomes",
    labelnames=["outcome"],  # created, updated, failed
    registry=REGISTRY,
)

chunk_duration_seconds = Histogram(
    name="record_sync_chunk_duration_seconds",
    documentation="Wall time of one chunk phase",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

batch_size = Histogram(
    name="record_sync_batch_size",
    documentation="Number of records decoded per run",
    buckets=[0, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=REGISTRY,
)

last_run_timestamp_seconds = Gauge(
    name="record_sync_last_run_timestamp_seconds",
    documentation="Unix time at which the last completed run finished",
    registry=REGISTRY,
)


# =======================
# LOG SINK METRICS
# =======================

log_events_total = Counter(
    name="record_sync_log_events_total",
    documentation="Events appended to the Log Sink",
    labelnames=["level"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type for the Prometheus text exposition."""
    return CONTENT_TYPE_LATEST


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def record_run_status(status: str) -> None:
    """Count one finished batch run."""
    increment_counter(batch_runs_total, status=status)


def record_outcome(outcome: str) -> None:
    """Count one reconciled record."""
    increment_counter(records_reconciled_total, outcome=outcome)
