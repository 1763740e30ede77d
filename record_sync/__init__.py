"""
record-sync: scheduled JSON batch ingestion with idempotent upsert and
level-partitioned operational logs.
"""

__version__ = "0.1.0"
