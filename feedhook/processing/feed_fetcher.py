"""
RSS Feed Fetcher
===============

Fetches and parses RSS/Atom feeds with bounded retry. feedparser output is
converted into ``FetchedFeed``/``FeedEntry`` here and nowhere else.
"""

import asyncio
import calendar
import ssl
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, List, Optional, Union

import aiohttp
import certifi
import feedparser

from ..config.settings import FeedHookSettings
from ..database.models import FeedEntry, FeedLink, FetchedFeed
from ..recovery.retry_logic import RetryConfig, RetryExhaustedError, RetryManager, RetryStrategy
from ..utils.exceptions import ErrorCode, FeedFetchError
from ..utils.logging import get_logger_for_component


class FeedParseError(Exception):
    """Document could not be read as RSS/Atom. Retried like a network error."""


class FeedHTTPError(Exception):
    """Feed URL answered with a non-2xx status."""


class FeedFetcher:
    """RSS/Atom fetcher with retry and feedparser adaptation."""

    def __init__(self, settings: FeedHookSettings, session: aiohttp.ClientSession):
        """Initialize feed fetcher.

        Args:
            settings: Application settings
            session: Shared HTTP session
        """
        self.settings = settings
        self.session = session
        self.logger = get_logger_for_component("feed_fetcher")
        self.retry_manager = RetryManager(
            RetryConfig(
                max_attempts=settings.fetch.max_attempts,
                strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
                min_delay=settings.fetch.min_delay,
                max_delay=settings.fetch.max_delay,
            ),
            component="feed_fetcher",
        )

    @staticmethod
    @asynccontextmanager
    async def create_session(settings: FeedHookSettings) -> AsyncIterator[aiohttp.ClientSession]:
        """Create the shared aiohttp session used for fetches, webhooks and heartbeats."""
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(
            ssl=ssl_context,
            limit_per_host=5,
        )

        timeout = aiohttp.ClientTimeout(total=settings.fetch.request_timeout)

        headers = {
            "User-Agent": f"{settings.app_name}/{settings.version}",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(self, url: str) -> FetchedFeed:
        """Fetch and parse a feed, retrying transient failures.

        Args:
            url: Feed URL

        Returns:
            Parsed feed

        Raises:
            FeedFetchError: After every attempt failed
        """
        try:
            return await self.retry_manager.retry_async(
                self._fetch_once, url, operation=f"fetch {url}"
            )
        except RetryExhaustedError as e:
            last = e.last_exception
            if isinstance(last, FeedParseError):
                error_code = ErrorCode.FEED_PARSE_ERROR
            elif isinstance(last, asyncio.TimeoutError):
                error_code = ErrorCode.FEED_FETCH_TIMEOUT
            else:
                error_code = ErrorCode.FEED_NETWORK_ERROR

            raise FeedFetchError(
                f"Failed to fetch feed after {len(e.attempts)} attempts: {last}",
                feed_url=url,
                error_code=error_code,
                context={"feed_url": url, "attempts": len(e.attempts)},
            ) from last

    async def _fetch_once(self, url: str) -> FetchedFeed:
        """Single attempt: GET, read body, parse."""
        self.logger.debug(f"Fetching feed: {url}", extra={"feed_url": url})
        content = await self._download(url)
        return self.parse(url, content)

    async def _download(self, url: str) -> bytes:
        async with self.session.get(url) as response:
            if not 200 <= response.status < 300:
                raise FeedHTTPError(f"HTTP {response.status}: {response.reason}")
            return await response.read()

    def parse(self, url: str, content: Union[bytes, str]) -> FetchedFeed:
        """Parse a raw feed document into a FetchedFeed.

        The document always goes to feedparser as bytes; a str would be
        treated as a URL or file path to open.

        Raises:
            FeedParseError: If the document is not a usable feed
        """
        if isinstance(content, str):
            content = content.encode("utf-8")

        feed_data = feedparser.parse(content)
        feed_info = feed_data.get("feed", {})

        if feed_data.get("bozo") and not feed_data.entries and not feed_info.get("title"):
            reason = feed_data.get("bozo_exception") or "Invalid XML structure"
            raise FeedParseError(f"Feed parse error: {reason}")

        if feed_data.get("bozo"):
            self.logger.debug(
                f"Feed has parse warnings but is usable: {feed_data.get('bozo_exception')}",
                extra={"feed_url": url},
            )

        return FetchedFeed(
            url=url,
            title=(feed_info.get("title") or "").strip() or None,
            ttl_minutes=self._parse_ttl(feed_info.get("ttl")),
            published_at=self._parse_date(feed_info),
            links=self._parse_links(feed_info),
            entries=self._parse_entries(feed_data.entries, url),
        )

    def _parse_entries(self, raw_entries: List[Any], feed_url: str) -> List[FeedEntry]:
        entries = []
        for raw in raw_entries:
            links = self._parse_links(raw)
            title = (raw.get("title") or "").strip() or None
            entry_id = (raw.get("id") or "").strip() or raw.get("link") or title

            if not entry_id:
                self.logger.warning(
                    "Entry without id, link or title skipped",
                    extra={"feed_url": feed_url},
                )
                continue

            entries.append(
                FeedEntry(
                    id=entry_id,
                    title=title,
                    description=self._extract_description(raw),
                    links=links,
                )
            )
        return entries

    @staticmethod
    def _extract_description(raw: Any) -> Optional[str]:
        """Entry description, preferring the RSS description/Atom summary."""
        summary = raw.get("summary")
        if summary:
            return summary

        content = raw.get("content")
        if isinstance(content, list) and content:
            value = content[0].get("value")
            if value:
                return value

        return None

    @staticmethod
    def _parse_links(raw: Any) -> List[FeedLink]:
        links = []
        for link in raw.get("links") or []:
            href = link.get("href")
            if not href:
                continue
            links.append(FeedLink(href=href, title=link.get("title") or None))

        # Plain RSS <link> sometimes arrives without a links list
        if not links and raw.get("link"):
            links.append(FeedLink(href=raw.get("link")))

        return links

    @staticmethod
    def _parse_ttl(raw_ttl: Any) -> Optional[float]:
        if raw_ttl in (None, ""):
            return None
        try:
            ttl = float(str(raw_ttl).strip())
        except ValueError:
            return None
        return ttl if ttl >= 0 else None

    @staticmethod
    def _parse_date(raw: Any) -> Optional[datetime]:
        """Feed-level publication time as an aware UTC datetime."""
        for field in ("published_parsed", "updated_parsed"):
            date_tuple = raw.get(field)
            if date_tuple:
                try:
                    # feedparser normalises to UTC struct_time
                    return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
                except (ValueError, OverflowError, TypeError):
                    continue
        return None
