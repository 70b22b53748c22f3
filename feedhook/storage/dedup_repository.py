"""
Dedup Repository
===============

Durable record of which (feed_url, entry_id) pairs have been delivered, plus
the per-feed initialisation marker. Single source of truth for novelty.

Every sqlite failure surfaces as DatabaseError so the caller abandons the
current poll cycle instead of treating the entry as undelivered.
"""

import sqlite3
from typing import Iterable, Optional

from ..database.connection import DatabaseConnection
from ..database.models import FeedMeta
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


class DedupRepository:
    """Repository for delivered-entry markers and feed metadata."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize dedup repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("dedup_store")

    async def has(self, feed_url: str, entry_id: str) -> bool:
        """Check whether an entry was already delivered (or seeded)."""
        try:
            row = self.db.execute_one(
                "SELECT 1 FROM delivered_entries WHERE feed_url = ? AND entry_id = ?",
                (feed_url, entry_id),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to read delivery marker for {entry_id}: {e}",
                error_code=ErrorCode.DATABASE_READ,
                context={"feed_url": feed_url, "entry_id": entry_id},
            ) from e
        return row is not None

    async def mark_delivered(self, feed_url: str, entry_id: str) -> None:
        """Record an entry as delivered. Idempotent."""
        try:
            self.db.execute_update(
                "INSERT OR IGNORE INTO delivered_entries (feed_url, entry_id) VALUES (?, ?)",
                (feed_url, entry_id),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to mark {entry_id} as delivered: {e}",
                error_code=ErrorCode.DATABASE_WRITE,
                context={"feed_url": feed_url, "entry_id": entry_id},
            ) from e

    async def mark_many_delivered(self, feed_url: str, entry_ids: Iterable[str]) -> int:
        """Record several entries as delivered in one commit.

        Returns:
            Number of newly recorded entries
        """
        rows = [(feed_url, entry_id) for entry_id in entry_ids]
        if not rows:
            return 0

        try:
            with self.db.transaction() as conn:
                before = conn.total_changes
                conn.executemany(
                    "INSERT OR IGNORE INTO delivered_entries (feed_url, entry_id) VALUES (?, ?)",
                    rows,
                )
                return conn.total_changes - before
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to seed {len(rows)} entries: {e}",
                error_code=ErrorCode.DATABASE_WRITE,
                context={"feed_url": feed_url},
            ) from e

    async def get_feed_meta(self, feed_url: str) -> Optional[FeedMeta]:
        """Get the initialisation record of a feed, if it was seeded."""
        try:
            row = self.db.execute_one(
                "SELECT init_ts FROM feed_meta WHERE feed_url = ?",
                (feed_url,),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to read feed metadata: {e}",
                error_code=ErrorCode.DATABASE_READ,
                context={"feed_url": feed_url},
            ) from e

        if row is None:
            return None
        return FeedMeta(init_ts=row["init_ts"])

    async def set_feed_meta(self, feed_url: str, meta: FeedMeta) -> None:
        """Write the initialisation record of a feed."""
        try:
            self.db.execute_update(
                "INSERT OR REPLACE INTO feed_meta (feed_url, init_ts) VALUES (?, ?)",
                (feed_url, meta.init_ts),
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to write feed metadata: {e}",
                error_code=ErrorCode.DATABASE_WRITE,
                context={"feed_url": feed_url},
            ) from e
