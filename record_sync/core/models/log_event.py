"""
LogEvent model representing one entry appended to the Log Sink.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Severity tags understood by the dashboard. Other names are accepted as extensions."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class LogEvent(BaseModel):
    """
    Immutable, level-tagged operational event.

    Attributes:
        timestamp: When the event was appended (UTC)
        level: Upper-case level tag (INFO, WARN, ERROR, SUCCESS, ...)
        message: Free-form text, single line
    """

    timestamp: datetime
    level: str = Field(..., min_length=1)
    message: str

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "timestamp": "2025-01-01T12:00:00.000Z",
                "level": "SUCCESS",
                "message": 'New entry added: {"id":1,"name":"Ada"}'
            }
        }
