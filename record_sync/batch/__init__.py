"""
Batch ingestion: reading, chunked upsert, and scheduling.
"""

from .loader import BatchLoader
from .readers import JsonBatchReader
from .scheduler import BatchScheduler
from .upsert_engine import ChunkedUpsertEngine

__all__ = [
    "BatchLoader",
    "BatchScheduler",
    "ChunkedUpsertEngine",
    "JsonBatchReader",
]
