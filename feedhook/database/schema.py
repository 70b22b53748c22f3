"""
FeedHook Database Schema
========================

SQLite schema for the dedup store:
- delivered_entries: one row per (feed_url, entry_id) already delivered or seeded
- feed_meta: per-feed initialisation marker written after first-sight seeding

Both tables are additive-only; rows are never updated or deleted by the engine.
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseSchema:
    """Database schema manager for the FeedHook dedup store."""

    TABLES = ('delivered_entries', 'feed_meta')

    def __init__(self, db_path: str = ".data/feedhook.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        with sqlite3.connect(self.db_path) as conn:
            self._create_delivered_entries_table(conn)
            self._create_feed_meta_table(conn)
            conn.commit()
            logger.debug("Database schema created successfully")

    def _create_delivered_entries_table(self, conn: sqlite3.Connection) -> None:
        """Create the (feed_url, entry_id) presence table."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS delivered_entries (
                feed_url TEXT NOT NULL,
                entry_id TEXT NOT NULL,
                delivered_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (feed_url, entry_id)
            )
        """
        )

    def _create_feed_meta_table(self, conn: sqlite3.Connection) -> None:
        """Create the per-feed initialisation table."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feed_meta (
                feed_url TEXT PRIMARY KEY,
                init_ts INTEGER NOT NULL  -- epoch milliseconds
            )
        """
        )

    def verify_schema(self) -> bool:
        """Check that every table exists."""
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()

        existing = {row[0] for row in rows}
        missing = [table for table in self.TABLES if table not in existing]
        if missing:
            logger.error(f"Missing tables: {', '.join(missing)}")
            return False
        return True
