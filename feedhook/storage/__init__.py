"""
FeedHook Storage Layer
=====================

Repository over the SQLite dedup store.
"""

from .dedup_repository import DedupRepository

__all__ = [
    "DedupRepository",
]
