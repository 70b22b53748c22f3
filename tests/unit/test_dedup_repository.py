"""
Dedup Repository Tests
======================

Tests for the SQLite dedup store: presence markers, feed metadata,
durability across reconnects and error wrapping.
"""

import sqlite3
from unittest.mock import patch

import pytest

from feedhook.database.connection import DatabaseConnection
from feedhook.database.models import FeedMeta
from feedhook.database.schema import DatabaseSchema
from feedhook.storage.dedup_repository import DedupRepository
from feedhook.utils.exceptions import DatabaseError, ErrorCode

FEED = "https://example.com/feed.xml"
OTHER_FEED = "https://example.org/atom"


class TestDedupRepository:

    @pytest.mark.asyncio
    async def test_unknown_entry_is_not_delivered(self, dedup_repo):
        assert await dedup_repo.has(FEED, "post-1") is False

    @pytest.mark.asyncio
    async def test_mark_delivered(self, dedup_repo):
        await dedup_repo.mark_delivered(FEED, "post-1")

        assert await dedup_repo.has(FEED, "post-1") is True

    @pytest.mark.asyncio
    async def test_mark_delivered_is_idempotent(self, dedup_repo, db_connection):
        await dedup_repo.mark_delivered(FEED, "post-1")
        await dedup_repo.mark_delivered(FEED, "post-1")

        row = db_connection.execute_one("SELECT COUNT(*) AS n FROM delivered_entries")
        assert row["n"] == 1

    @pytest.mark.asyncio
    async def test_entry_ids_are_scoped_per_feed(self, dedup_repo):
        await dedup_repo.mark_delivered(FEED, "1")

        assert await dedup_repo.has(FEED, "1") is True
        assert await dedup_repo.has(OTHER_FEED, "1") is False

    @pytest.mark.asyncio
    async def test_entry_called_config_does_not_clash_with_metadata(self, dedup_repo):
        await dedup_repo.mark_delivered(FEED, "config")

        assert await dedup_repo.get_feed_meta(FEED) is None
        assert await dedup_repo.has(FEED, "config") is True

    @pytest.mark.asyncio
    async def test_mark_many_delivered(self, dedup_repo):
        await dedup_repo.mark_delivered(FEED, "a")

        added = await dedup_repo.mark_many_delivered(FEED, ["a", "b", "c"])

        assert added == 2
        for entry_id in ("a", "b", "c"):
            assert await dedup_repo.has(FEED, entry_id)

    @pytest.mark.asyncio
    async def test_mark_many_delivered_with_nothing(self, dedup_repo):
        assert await dedup_repo.mark_many_delivered(FEED, []) == 0

    @pytest.mark.asyncio
    async def test_feed_meta_round_trip(self, dedup_repo):
        assert await dedup_repo.get_feed_meta(FEED) is None

        await dedup_repo.set_feed_meta(FEED, FeedMeta(init_ts=1_736_157_600_000))
        meta = await dedup_repo.get_feed_meta(FEED)

        assert meta.init_ts == 1_736_157_600_000
        assert meta.initialized_at.year == 2025

    @pytest.mark.asyncio
    async def test_markers_survive_reconnect(self, db_path):
        first = DatabaseConnection(db_path)
        await DedupRepository(first).mark_delivered(FEED, "post-1")
        await DedupRepository(first).set_feed_meta(FEED, FeedMeta.now())
        first.close_all_connections()

        second = DatabaseConnection(db_path)
        try:
            repo = DedupRepository(second)
            assert await repo.has(FEED, "post-1") is True
            assert await repo.get_feed_meta(FEED) is not None
        finally:
            second.close_all_connections()

    @pytest.mark.asyncio
    async def test_read_failure_raises_database_error(self, dedup_repo):
        with patch.object(dedup_repo.db, "execute_one", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(DatabaseError) as exc_info:
                await dedup_repo.has(FEED, "post-1")

        assert exc_info.value.error_code == ErrorCode.DATABASE_READ
        assert exc_info.value.context["entry_id"] == "post-1"

    @pytest.mark.asyncio
    async def test_write_failure_raises_database_error(self, dedup_repo):
        with patch.object(dedup_repo.db, "execute_update", side_effect=sqlite3.OperationalError("database is locked")):
            with pytest.raises(DatabaseError) as exc_info:
                await dedup_repo.mark_delivered(FEED, "post-1")

        assert exc_info.value.error_code == ErrorCode.DATABASE_WRITE
        assert exc_info.value.recoverable is True


class TestDatabaseSchema:

    def test_create_and_verify(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "nested" / "dir" / "store.db"))
        schema.create_tables()

        assert schema.verify_schema() is True

    def test_verify_reports_missing_tables(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "empty.db"))

        assert schema.verify_schema() is False

    def test_database_info_counts(self, db_connection):
        db_connection.execute_update(
            "INSERT INTO delivered_entries (feed_url, entry_id) VALUES (?, ?)", (FEED, "x")
        )

        info = db_connection.get_database_info()

        assert info["table_counts"]["delivered_entries"] == 1
        assert info["table_counts"]["feed_meta"] == 0
