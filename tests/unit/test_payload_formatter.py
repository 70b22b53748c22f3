"""
Payload Formatter Tests
=======================

Tests for NotificationPayload construction and the webhook JSON body.
"""

from datetime import datetime, timezone

import pytest

from feedhook.config.settings import DeliverySettings, FeedSettings, ImageMode
from feedhook.database.models import FeedEntry, FeedLink, FetchedFeed
from feedhook.delivery.payload_formatter import (
    AUTHOR_PLACEHOLDER,
    TITLE_PLACEHOLDER,
    PayloadFormatter,
)

FEED = "https://example.com/feed.xml"
PUBLISHED = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def formatter():
    return PayloadFormatter(DeliverySettings())


@pytest.fixture
def feed():
    return FetchedFeed(
        url=FEED,
        title="Example Blog",
        published_at=PUBLISHED,
        links=[FeedLink(href="https://example.com/")],
    )


def html_feed_config():
    return FeedSettings(url=FEED, image_mode=ImageMode.HTML)


def plain_feed_config():
    return FeedSettings(url=FEED)


class TestPayloadFormatter:

    def test_full_payload(self, formatter, feed):
        entry = FeedEntry(
            id="post-1",
            title="Hello",
            description="Body",
            links=[FeedLink(href="https://example.com/posts/1", title="Read more")],
        )

        payload = formatter.build(plain_feed_config(), feed, entry)

        assert payload.title == "Hello"
        assert payload.description == "Body\n\n[Read more](https://example.com/posts/1)"
        assert payload.author.name == "Example Blog"
        assert payload.author.url == "https://example.com/"
        assert payload.timestamp == PUBLISHED
        assert payload.image is None

    def test_title_placeholder(self, formatter, feed):
        payload = formatter.build(plain_feed_config(), feed, FeedEntry(id="x"))

        assert payload.title == TITLE_PLACEHOLDER

    def test_author_placeholder_and_no_link(self, formatter):
        bare_feed = FetchedFeed(url=FEED)

        payload = formatter.build(plain_feed_config(), bare_feed, FeedEntry(id="x"))

        assert payload.author.name == AUTHOR_PLACEHOLDER
        assert payload.author.url is None
        assert payload.timestamp is None

    def test_non_http_links_are_dropped_and_labels_keep_position(self, formatter, feed):
        entry = FeedEntry(id="x", links=[
            FeedLink(href="mailto:someone@example.com"),
            FeedLink(href=None, title="Missing"),
            FeedLink(href="https://example.com/a"),
            FeedLink(href="http://example.com/b"),
        ])

        payload = formatter.build(plain_feed_config(), feed, entry)

        assert payload.description == "[Link 3](https://example.com/a)\n[Link 4](http://example.com/b)"

    def test_description_without_links(self, formatter, feed):
        payload = formatter.build(plain_feed_config(), feed, FeedEntry(id="x", description="Only text"))

        assert payload.description == "Only text"

    def test_empty_description_is_sent_as_empty_string(self, formatter, feed):
        payload = formatter.build(plain_feed_config(), feed, FeedEntry(id="x"))

        assert payload.description == ""

    def test_html_mode_attaches_image(self, formatter, feed):
        entry = FeedEntry(id="x", description='<img src="https://x/a.png">')

        payload = formatter.build(html_feed_config(), feed, entry)

        assert payload.image.url == "https://x/a.png"

    def test_html_mode_without_valid_src(self, formatter, feed):
        entry = FeedEntry(id="x", description='<img src="::bad::">')

        payload = formatter.build(html_feed_config(), feed, entry)

        assert payload.image is None

    def test_none_mode_never_attaches_image(self, formatter, feed):
        entry = FeedEntry(id="x", description='<img src="https://x/a.png">')

        payload = formatter.build(plain_feed_config(), feed, entry)

        assert payload.image is None

    def test_truncation(self, feed):
        formatter = PayloadFormatter(DeliverySettings(max_title_length=20, max_description_length=100))
        entry = FeedEntry(id="x", title="T" * 50, description="D" * 500)

        payload = formatter.build(plain_feed_config(), feed, entry)

        assert len(payload.title) == 20
        assert payload.title.endswith("...")
        assert len(payload.description) == 100


class TestWebhookBody:

    def test_body_shape(self, formatter, feed):
        entry = FeedEntry(id="x", title="Hello", description='<img src="https://x/a.png">')

        body = formatter.build(html_feed_config(), feed, entry).to_webhook_body()

        embed = body["embeds"][0]
        assert list(body) == ["embeds"]
        assert embed["title"] == "Hello"
        assert embed["image"] == {"url": "https://x/a.png"}
        assert embed["author"] == {"name": "Example Blog", "url": "https://example.com/"}
        assert embed["timestamp"].startswith("2025-01-06T10:00:00")

    def test_optional_fields_are_omitted(self, formatter):
        body = formatter.build(plain_feed_config(), FetchedFeed(url=FEED), FeedEntry(id="x")).to_webhook_body()

        embed = body["embeds"][0]
        assert "image" not in embed
        assert "timestamp" not in embed
        assert embed["description"] == ""
        assert embed["author"] == {"name": AUTHOR_PLACEHOLDER}
