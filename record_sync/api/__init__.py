"""
HTTP dashboard over the Log Sink.
"""

from .dashboard import create_app

__all__ = [
    "create_app",
]
