"""
FeedHook Data Models
===================

Pydantic models shared across the engine. ``FetchedFeed`` and ``FeedEntry``
are the narrow view of a parsed feed the rest of the engine depends on;
nothing outside the fetcher touches feedparser's own types.
"""

from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class FeedLink(BaseModel):
    """A link attached to a feed or entry."""
    href: Optional[str] = Field(default=None, description="Link target")
    title: Optional[str] = Field(default=None, description="Link label")


class FeedEntry(BaseModel):
    """A single entry as reported by the feed."""
    id: str = Field(..., min_length=1, description="Feed-supplied entry identifier, unique per feed")
    title: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None, description="Raw HTML/text description")
    links: List[FeedLink] = Field(default_factory=list)

    def first_link(self) -> Optional[str]:
        """First link href, if the entry has one."""
        for link in self.links:
            if link.href:
                return link.href
        return None


class FetchedFeed(BaseModel):
    """Transient result of one fetch; never persisted."""
    url: str = Field(..., description="URL the feed was fetched from")
    title: Optional[str] = Field(default=None)
    ttl_minutes: Optional[float] = Field(default=None, ge=0, description="Feed-advertised refresh hint")
    published_at: Optional[datetime] = Field(default=None)
    links: List[FeedLink] = Field(default_factory=list)
    entries: List[FeedEntry] = Field(default_factory=list)

    def first_link(self) -> Optional[str]:
        for link in self.links:
            if link.href:
                return link.href
        return None

    def display_title(self) -> str:
        """Feed title for log lines, falling back to the URL."""
        return self.title or self.url


class FeedMeta(BaseModel):
    """Per-feed initialisation record."""
    init_ts: int = Field(..., description="Epoch milliseconds when the feed was first seeded")

    @classmethod
    def now(cls) -> "FeedMeta":
        return cls(init_ts=int(datetime.now(timezone.utc).timestamp() * 1000))

    @property
    def initialized_at(self) -> datetime:
        return datetime.fromtimestamp(self.init_ts / 1000, tz=timezone.utc)


class EmbedAuthor(BaseModel):
    name: str
    url: Optional[str] = None


class EmbedImage(BaseModel):
    url: str


class NotificationPayload(BaseModel):
    """One webhook notification for one novel entry."""
    title: str
    description: str = ""
    image: Optional[EmbedImage] = None
    author: EmbedAuthor
    timestamp: Optional[datetime] = None

    def to_webhook_body(self) -> Dict[str, Any]:
        """JSON body posted to every webhook: ``{"embeds": [embed]}``."""
        embed = self.model_dump(mode="json", exclude_none=True)
        return {"embeds": [embed]}
