"""
Core data models for the record sync service.

All models use Pydantic for runtime validation and type safety.
"""

from .log_event import LogEvent, LogLevel
from .reconcile_summary import ReconcileSummary
from .record import PAYLOAD_FIELDS, Record

__all__ = [
    "Record",
    "PAYLOAD_FIELDS",
    "LogEvent",
    "LogLevel",
    "ReconcileSummary",
]
