"""
Payload Formatter
=================

Builds the webhook notification for a novel entry:
- Title with placeholder when the entry has none
- Description followed by a markdown list of the entry's http(s) links
- Optional image from the entry HTML (image mode 'html' only)
- Author and timestamp taken from the feed
"""

from typing import List, Optional

from ..config.settings import DeliverySettings, FeedSettings, ImageMode
from ..database.models import (
    EmbedAuthor,
    EmbedImage,
    FeedEntry,
    FeedLink,
    FetchedFeed,
    NotificationPayload,
)
from ..processing.image_extractor import ImageExtractor
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator


TITLE_PLACEHOLDER = "¯\\_(ツ)_/¯"
AUTHOR_PLACEHOLDER = "Someones RSS Feed"


class PayloadFormatter:
    """Turns a feed entry into a NotificationPayload."""

    def __init__(self, delivery_settings: DeliverySettings, image_extractor: Optional[ImageExtractor] = None):
        """Initialize payload formatter.

        Args:
            delivery_settings: Length limits for title and description
            image_extractor: Extractor used for feeds in image mode 'html'
        """
        self.settings = delivery_settings
        self.image_extractor = image_extractor or ImageExtractor()
        self.logger = get_logger_for_component("payload_formatter")

    def build(self, feed_config: FeedSettings, feed: FetchedFeed, entry: FeedEntry) -> NotificationPayload:
        """Build the notification for one entry.

        Args:
            feed_config: Configured feed the entry belongs to
            feed: Feed as fetched in the current poll
            entry: The novel entry

        Returns:
            Payload ready for delivery
        """
        title = self._truncate_text(entry.title or TITLE_PLACEHOLDER, self.settings.max_title_length)

        description = self._truncate_text(self._build_description(entry), self.settings.max_description_length)

        image = None
        image_url = self._select_image(feed_config.image_mode, entry)
        if image_url:
            image = EmbedImage(url=image_url)

        return NotificationPayload(
            title=title,
            description=description,
            image=image,
            author=EmbedAuthor(
                name=feed.title or AUTHOR_PLACEHOLDER,
                url=feed.first_link(),
            ),
            timestamp=feed.published_at,
        )

    def _select_image(self, image_mode: ImageMode, entry: FeedEntry) -> Optional[str]:
        if image_mode is ImageMode.HTML:
            if not entry.description:
                return None
            return self.image_extractor.extract_first_image(entry.description)
        elif image_mode is ImageMode.NONE:
            return None
        raise ValueError(f"Unhandled image mode: {image_mode}")

    def _build_description(self, entry: FeedEntry) -> str:
        parts = []
        if entry.description:
            parts.append(entry.description)

        rendered_links = self.render_links(entry.links)
        if rendered_links:
            parts.append(rendered_links)

        return "\n\n".join(parts)

    @staticmethod
    def render_links(links: List[FeedLink]) -> str:
        """Render http(s) links as ``[label](href)`` lines.

        Links without an href or with another scheme are left out. Fallback
        labels keep the link's position in the entry.
        """
        rendered = []
        for position, link in enumerate(links, start=1):
            if not URLValidator.is_http_url(link.href):
                continue
            label = link.title or f"Link {position}"
            rendered.append(f"[{label}]({link.href})")
        return "\n".join(rendered)

    @staticmethod
    def _truncate_text(text: str, max_length: int) -> str:
        """Truncate text to specified length with ellipsis."""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."
