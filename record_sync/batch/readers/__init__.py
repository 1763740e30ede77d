"""
Batch data source readers.
"""

from .json_reader import JsonBatchReader

__all__ = [
    "JsonBatchReader",
]
