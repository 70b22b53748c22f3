"""
Webhook Delivery
================

Posts notification payloads to every configured webhook and records
successful deliveries in the dedup store.

Webhooks are attempted one after another. The entry is marked delivered as
soon as any webhook answers 2xx, so a later webhook failing in the same
fan-out is not retried on the next poll.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import aiohttp

from ..database.models import NotificationPayload
from ..storage.dedup_repository import DedupRepository
from ..utils.exceptions import DeliveryError, ErrorCode
from ..utils.logging import get_logger_for_component


@dataclass
class DeliveryResult:
    """Result of delivering one entry to all webhooks."""
    feed_url: str
    entry_id: str
    webhooks_attempted: int = 0
    webhooks_succeeded: int = 0
    marked_delivered: bool = False
    dry_run: bool = False
    errors: List[str] = field(default_factory=list)
    delivery_time: Optional[datetime] = None

    def __post_init__(self):
        if not self.delivery_time:
            self.delivery_time = datetime.now(timezone.utc)

    @property
    def success(self) -> bool:
        return self.webhooks_succeeded > 0


class WebhookSender:
    """Delivers payloads to webhooks."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        webhooks: List[str],
        dedup_repo: DedupRepository,
        dry_run: bool = False,
    ):
        """Initialize webhook sender.

        Args:
            session: Shared HTTP session
            webhooks: Webhook URLs, attempted in order
            dedup_repo: Store updated after a successful post
            dry_run: Log payloads instead of posting them
        """
        self.session = session
        self.webhooks = list(webhooks)
        self.dedup_repo = dedup_repo
        self.dry_run = dry_run
        self.logger = get_logger_for_component("webhook_sender")

    async def deliver(self, feed_url: str, entry_id: str, payload: NotificationPayload) -> DeliveryResult:
        """Post ``payload`` to every webhook.

        Per-webhook failures are logged and never raised. A dedup store
        failure while marking the entry propagates as DatabaseError.

        Args:
            feed_url: Feed the entry belongs to
            entry_id: Entry identifier within the feed
            payload: Notification to send

        Returns:
            DeliveryResult for the entry
        """
        result = DeliveryResult(feed_url=feed_url, entry_id=entry_id, dry_run=self.dry_run)
        body = payload.to_webhook_body()

        if self.dry_run:
            self.logger.info(
                f"[dry-run] Would post to {len(self.webhooks)} webhook(s): "
                f"{json.dumps(body, ensure_ascii=False)}",
                extra={"feed_url": feed_url, "entry_id": entry_id},
            )
            return result

        for webhook_url in self.webhooks:
            result.webhooks_attempted += 1
            try:
                status, response_text = await self._post(webhook_url, body)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                error = DeliveryError(
                    f"Network error posting entry {entry_id}: {e}",
                    webhook_url=webhook_url,
                    error_code=ErrorCode.DELIVERY_NETWORK_ERROR,
                )
                self._log_failure(error, feed_url, entry_id, webhook_url)
                result.errors.append(str(error))
                continue

            if 200 <= status < 300:
                result.webhooks_succeeded += 1
                if not result.marked_delivered:
                    await self.dedup_repo.mark_delivered(feed_url, entry_id)
                    result.marked_delivered = True
                self.logger.debug(
                    f"Delivered entry {entry_id} (HTTP {status})",
                    extra={"feed_url": feed_url, "entry_id": entry_id, "webhook_url": webhook_url},
                )
            else:
                error = DeliveryError(
                    f"Error processing feed item: HTTP {status}: {response_text[:500]}",
                    webhook_url=webhook_url,
                    status=status,
                    error_code=ErrorCode.DELIVERY_REJECTED,
                )
                self._log_failure(error, feed_url, entry_id, webhook_url)
                result.errors.append(str(error))

        return result

    async def _post(self, webhook_url: str, body: dict) -> Tuple[int, str]:
        """POST JSON and return (status, response text)."""
        async with self.session.post(
            webhook_url,
            json=body,
            headers={"Content-Type": "application/json"},
        ) as response:
            # Body is only logged, so decode leniently
            return response.status, await response.text(errors="replace")

    def _log_failure(self, error: DeliveryError, feed_url: str, entry_id: str, webhook_url: str) -> None:
        self.logger.error(
            str(error),
            extra={
                "feed_url": feed_url,
                "entry_id": entry_id,
                "webhook_url": webhook_url,
                "error_code": error.error_code.value,
            },
        )
