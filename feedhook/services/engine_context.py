"""
Engine Context
==============

Everything the polling engine shares (settings, dedup store, HTTP session and
the components built on them) lives in one EngineContext created at startup
and passed explicitly to the scheduler. Nothing in the engine reads global
state.
"""

import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import aiohttp

from ..config.settings import FeedHookSettings
from ..database.connection import DatabaseConnection
from ..database.schema import DatabaseSchema
from ..delivery.payload_formatter import PayloadFormatter
from ..delivery.webhook_sender import WebhookSender
from ..monitoring.health_check import HealthChecker
from ..processing.entry_processor import EntryProcessor
from ..processing.feed_fetcher import FeedFetcher
from ..processing.image_extractor import ImageExtractor
from ..storage.dedup_repository import DedupRepository
from ..utils.exceptions import ConfigurationError, DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


@dataclass
class EngineContext:
    """Shared engine state, constructed once per process."""
    settings: FeedHookSettings
    db: DatabaseConnection
    dedup_repo: DedupRepository
    session: aiohttp.ClientSession
    fetcher: FeedFetcher
    formatter: PayloadFormatter
    sender: WebhookSender
    processor: EntryProcessor
    health_checker: Optional[HealthChecker] = None

    @property
    def dry_run(self) -> bool:
        return self.sender.dry_run


def open_dedup_store(settings: FeedHookSettings) -> DatabaseConnection:
    """Create the schema if needed and open the connection pool.

    Raises:
        DatabaseError: If the store cannot be opened
    """
    try:
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()
        schema_ok = schema.verify_schema()
    except (sqlite3.Error, OSError) as e:
        raise DatabaseError(
            f"Failed to open dedup store at {settings.database.path}: {e}",
            error_code=ErrorCode.DATABASE_CONNECTION,
            context={"path": settings.database.path},
            recoverable=False,
        ) from e

    if not schema_ok:
        raise DatabaseError(
            f"Dedup store at {settings.database.path} is missing tables",
            error_code=ErrorCode.DATABASE_SCHEMA,
            context={"path": settings.database.path},
            recoverable=False,
        )

    return DatabaseConnection(settings.database.path, pool_size=settings.database.pool_size)


@asynccontextmanager
async def create_engine_context(
    settings: FeedHookSettings,
    dry_run: Optional[bool] = None,
) -> AsyncIterator[EngineContext]:
    """Build the engine context and release its resources on exit.

    Args:
        settings: Validated application settings
        dry_run: Overrides ``settings.delivery.dry_run`` when given

    Raises:
        ConfigurationError: If no feeds or no webhooks are configured
    """
    logger = get_logger_for_component("engine")

    if not settings.feeds:
        raise ConfigurationError("No feeds given in config", config_key="feeds",
                                 error_code=ErrorCode.CONFIG_EMPTY_LIST)
    if not settings.webhooks:
        raise ConfigurationError("No webhooks given in config", config_key="webhooks",
                                 error_code=ErrorCode.CONFIG_EMPTY_LIST)

    if dry_run is None:
        dry_run = settings.delivery.dry_run

    db = open_dedup_store(settings)
    try:
        async with FeedFetcher.create_session(settings) as session:
            dedup_repo = DedupRepository(db)
            formatter = PayloadFormatter(settings.delivery, ImageExtractor())
            sender = WebhookSender(session, settings.webhooks, dedup_repo, dry_run=dry_run)

            health_checker = None
            if settings.health_check:
                health_checker = HealthChecker(session, settings.health_check, settings.health)

            context = EngineContext(
                settings=settings,
                db=db,
                dedup_repo=dedup_repo,
                session=session,
                fetcher=FeedFetcher(settings, session),
                formatter=formatter,
                sender=sender,
                processor=EntryProcessor(dedup_repo, formatter, sender),
                health_checker=health_checker,
            )

            logger.debug(
                f"Engine context ready: {len(settings.feeds)} feed(s), "
                f"{len(settings.webhooks)} webhook(s), dry_run={dry_run}"
            )
            yield context
    finally:
        db.close_all_connections()
