"""
Entry Processor
===============

Decides which entries of a freshly fetched feed are new and hands one
payload per new entry to delivery.

The first time a feed is seen every entry it currently reports is recorded
as delivered without sending anything, so adding a feed does not flood the
webhooks with its backlog.
"""

from dataclasses import dataclass, field
from typing import List

from ..config.settings import FeedSettings
from ..database.models import FeedMeta, FetchedFeed
from ..delivery.payload_formatter import PayloadFormatter
from ..delivery.webhook_sender import DeliveryResult, WebhookSender
from ..storage.dedup_repository import DedupRepository
from ..utils.logging import get_logger_for_component


@dataclass
class ProcessingResult:
    """Outcome of one poll of one feed."""
    feed_url: str
    entries_seen: int = 0
    seeded: int = 0
    new_entries: int = 0
    first_sight: bool = False
    deliveries: List[DeliveryResult] = field(default_factory=list)


class EntryProcessor:
    """Novelty detection and payload hand-off for fetched feeds."""

    def __init__(self, dedup_repo: DedupRepository, formatter: PayloadFormatter, sender: WebhookSender):
        """Initialize entry processor.

        Args:
            dedup_repo: Dedup store
            formatter: Builds payloads for new entries
            sender: Delivers payloads to the webhooks
        """
        self.dedup_repo = dedup_repo
        self.formatter = formatter
        self.sender = sender
        self.logger = get_logger_for_component("entry_processor")

    async def process(self, feed_config: FeedSettings, feed: FetchedFeed) -> ProcessingResult:
        """Seed an unseen feed, or deliver its new entries.

        Entries are handled strictly in feed order; every webhook for one entry
        is attempted before the next entry is checked.

        Raises:
            DatabaseError: If the dedup store fails; the rest of the poll is abandoned
        """
        if await self.dedup_repo.get_feed_meta(feed_config.url) is None:
            return await self.seed(feed_config, feed)

        result = ProcessingResult(feed_url=feed_config.url, entries_seen=len(feed.entries))

        for entry in feed.entries:
            if await self.dedup_repo.has(feed_config.url, entry.id):
                continue

            result.new_entries += 1
            self.logger.info(
                f"New entry ({entry.id}): {entry.first_link()}",
                extra={"feed_url": feed_config.url, "entry_id": entry.id},
            )

            payload = self.formatter.build(feed_config, feed, entry)
            result.deliveries.append(await self.sender.deliver(feed_config.url, entry.id, payload))

        return result

    async def seed(self, feed_config: FeedSettings, feed: FetchedFeed) -> ProcessingResult:
        """Record every current entry as delivered and mark the feed initialised."""
        self.logger.info(
            "Feed has not been used before, updating store...",
            extra={"feed_url": feed_config.url},
        )

        seeded = await self.dedup_repo.mark_many_delivered(
            feed_config.url, [entry.id for entry in feed.entries]
        )
        # Written last so an interrupted seed is redone on the next poll
        await self.dedup_repo.set_feed_meta(feed_config.url, FeedMeta.now())

        self.logger.info(
            f"Seeded {len(feed.entries)} existing entries ({seeded} new markers)",
            extra={"feed_url": feed_config.url},
        )

        return ProcessingResult(
            feed_url=feed_config.url,
            entries_seen=len(feed.entries),
            seeded=len(feed.entries),
            first_sight=True,
        )
