"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedHook tests.
"""

import pytest
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep a developer's environment from leaking into the settings under test
for _key in list(os.environ):
    if _key.startswith("FEEDHOOK_"):
        del os.environ[_key]


FEED_URL = "https://example.com/feed.xml"
WEBHOOK_A = "https://hooks.example.com/a"
WEBHOOK_B = "https://hooks.example.com/b"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_path(tmp_path):
    """Fresh dedup store file with the schema applied."""
    from feedhook.database.schema import DatabaseSchema

    path = tmp_path / ".data" / "feedhook_test.db"
    DatabaseSchema(str(path)).create_tables()
    return str(path)


@pytest.fixture
def db_connection(db_path):
    """Pooled connection to the test dedup store."""
    from feedhook.database.connection import DatabaseConnection

    conn = DatabaseConnection(db_path, pool_size=2)
    yield conn
    conn.close_all_connections()


@pytest.fixture
def dedup_repo(db_connection):
    from feedhook.storage.dedup_repository import DedupRepository

    return DedupRepository(db_connection)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings_factory(tmp_path):
    """Build settings without reading config.json from the working directory."""
    from feedhook.config.settings import FeedHookSettings

    def _make(**overrides):
        values = {
            "feeds": [FEED_URL],
            "webhooks": [WEBHOOK_A],
            "database": {"path": str(tmp_path / ".data" / "feedhook.db")},
            "logging": {"file_path": None},
            "_env_file": None,
        }
        values.update(overrides)
        return FeedHookSettings(**values)

    return _make


@pytest.fixture
def test_settings(settings_factory):
    return settings_factory()


@pytest.fixture
def mock_session():
    """Stand-in for aiohttp.ClientSession; tests patch the methods that use it."""
    return MagicMock()


# ============================================================================
# Feed Content Fixtures
# ============================================================================


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <description>Posts from example.com</description>
    <ttl>30</ttl>
    <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
    <item>
      <title>Second post</title>
      <link>https://example.com/posts/2</link>
      <guid>post-2</guid>
      <description>&lt;p&gt;Hello &lt;img src="https://example.com/img/2.png"&gt;&lt;/p&gt;</description>
    </item>
    <item>
      <title>First post</title>
      <link>https://example.com/posts/1</link>
      <guid>post-1</guid>
      <description>Plain text body</description>
    </item>
  </channel>
</rss>
"""


SAMPLE_ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <link href="https://atom.example.org/"/>
  <updated>2025-01-06T10:00:00Z</updated>
  <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
  <entry>
    <title>Atom entry</title>
    <link href="https://atom.example.org/entries/1"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2025-01-06T09:00:00Z</updated>
    <summary>Short summary</summary>
  </entry>
</feed>
"""


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS


@pytest.fixture
def sample_atom():
    return SAMPLE_ATOM


@pytest.fixture
def make_feed():
    """Build a FetchedFeed from (id, title) pairs."""
    from feedhook.database.models import FeedEntry, FeedLink, FetchedFeed

    def _make(*entries, url=FEED_URL, title="Example Blog", ttl=None, published_at=None):
        return FetchedFeed(
            url=url,
            title=title,
            ttl_minutes=ttl,
            published_at=published_at,
            links=[FeedLink(href="https://example.com/")],
            entries=[
                FeedEntry(
                    id=entry_id,
                    title=entry_title,
                    description=f"Body of {entry_id}",
                    links=[FeedLink(href=f"https://example.com/posts/{entry_id}")],
                )
                for entry_id, entry_title in entries
            ],
        )

    return _make
