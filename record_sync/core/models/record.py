"""
Record model representing a single entry reconciled into the store.
"""

import json
from datetime import datetime

from pydantic import BaseModel

# Columns owned by the batch payload; created_at/updated_at belong to the store.
PAYLOAD_FIELDS = ("id", "name", "score", "age", "city", "gender")


class Record(BaseModel):
    """
    Identity-bearing entry keyed by ``id``.

    Decoded records carry no timestamps; records read back from the store
    have ``created_at`` and ``updated_at`` filled in.

    Attributes:
        id: Unique, stable business key
        name: Display name
        score: Numeric score
        age: Age in years
        city: City name
        gender: Free-form gender label
        created_at: Set by the store on insert
        updated_at: Set by the store on insert and on every update
    """

    id: int
    name: str | None = None
    score: float | None = None
    age: int | None = None
    city: str | None = None
    gender: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "id": 1,
                "name": "Ada",
                "score": 91.5,
                "age": 36,
                "city": "London",
                "gender": "Female"
            }
        }

    def payload(self) -> dict:
        """Return the batch-owned fields, without store timestamps."""
        return {field: getattr(self, field) for field in PAYLOAD_FIELDS}

    def to_log_json(self) -> str:
        """Compact JSON form used in log messages."""
        return json.dumps(self.payload(), separators=(",", ":"), default=str)
