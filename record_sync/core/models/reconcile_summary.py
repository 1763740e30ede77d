"""
ReconcileSummary model describing the outcome of one batch run (ephemeral).
"""

from pydantic import BaseModel


class ReconcileSummary(BaseModel):
    """
    Per-run counters. Every counted outcome was also written to the Log Sink.

    Attributes:
        total_records: Records handed to the engine
        chunks: Chunk phases executed
        created: Records inserted
        updated: Records replaced
        failed: Records whose reconcile failed
    """

    total_records: int = 0
    chunks: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0

    @property
    def succeeded(self) -> int:
        return self.created + self.updated
