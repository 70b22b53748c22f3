"""
Feed Scheduler
==============

Owns one recurring timer per feed plus an optional health-check timer.

Per feed: Uninitialized -> Initialized -> Polling. A feed whose first fetch
fails is skipped for the rest of the process lifetime.

Timers tick at a fixed rate and start each poll as its own task, so two polls
of the same feed can overlap when a poll outlasts the interval. Every timer
has its own cancellation token; stop() sets them all.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Set

from ..config.settings import FeedSettings
from ..processing.entry_processor import ProcessingResult
from ..services.engine_context import EngineContext
from ..utils.exceptions import (
    DatabaseError,
    FeedFetchError,
    FeedHookError,
    FeedInitError,
    HealthCheckError,
    is_retryable_error,
)
from ..utils.logging import get_logger_for_component


HEALTH_TIMER = "health-check"


class FeedState(str, Enum):
    """Lifecycle of a configured feed."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    POLLING = "polling"
    SKIPPED = "skipped"


def compute_poll_interval(
    ttl_minutes: Optional[float],
    default_minutes: float = 60,
    max_minutes: float = 60,
) -> float:
    """Poll interval in minutes from the feed's ttl hint.

    A missing or non-positive ttl falls back to ``default_minutes``; the result
    never exceeds ``max_minutes``.
    """
    if ttl_minutes is None or ttl_minutes <= 0:
        ttl_minutes = default_minutes
    return min(ttl_minutes, max_minutes)


class FeedScheduler:
    """Drives polling of every configured feed."""

    def __init__(self, context: EngineContext):
        """Initialize scheduler.

        Args:
            context: Engine context built at startup
        """
        self.context = context
        self.settings = context.settings
        self.logger = get_logger_for_component("scheduler")

        self.feed_states: Dict[str, FeedState] = {
            feed.url: FeedState.UNINITIALIZED for feed in self.settings.feeds
        }
        self.intervals: Dict[str, float] = {}

        self._timers: Dict[str, asyncio.Task] = {}
        self._tokens: Dict[str, asyncio.Event] = {}
        self._in_flight: Set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    async def initialize_feed(self, feed_config: FeedSettings) -> float:
        """Fetch a feed once, seed it if unseen and run the first check.

        Returns:
            Poll interval in minutes

        Raises:
            FeedInitError: If the feed cannot be fetched or seeded
        """
        try:
            feed = await self.context.fetcher.fetch(feed_config.url)
        except FeedFetchError as e:
            raise FeedInitError(
                f"Failed to init feed \"{feed_config.url}\": {e}",
                feed_url=feed_config.url,
            ) from e

        interval = compute_poll_interval(
            feed.ttl_minutes,
            self.settings.scheduler.default_interval_minutes,
            self.settings.scheduler.max_interval_minutes,
        )
        self.logger.info(
            f"Found feed \"{feed.display_title()}\", checking every {interval:g} minutes",
            extra={"feed_url": feed_config.url},
        )

        # First-sight seeding happens inside process(); the fetch is reused
        # for the immediate check
        try:
            await self.context.processor.process(feed_config, feed)
        except DatabaseError as e:
            raise FeedInitError(
                f"Failed to init feed \"{feed_config.url}\": {e}",
                feed_url=feed_config.url,
            ) from e

        self.feed_states[feed_config.url] = FeedState.INITIALIZED
        self.intervals[feed_config.url] = interval
        return interval

    async def check_feed(self, feed_config: FeedSettings) -> Optional[ProcessingResult]:
        """One poll: fetch and process. Errors are logged, never raised."""
        url = feed_config.url
        try:
            feed = await self.context.fetcher.fetch(url)
            return await self.context.processor.process(feed_config, feed)

        except FeedFetchError as e:
            self.logger.error(f"Skipping poll, fetch failed: {e}", extra={"feed_url": url})
        except DatabaseError as e:
            self.logger.error(f"Poll abandoned, dedup store failed: {e}", extra={"feed_url": url})
        except FeedHookError as e:
            outcome = "will retry next poll" if is_retryable_error(e) else "not retryable"
            self.logger.error(f"Poll failed ({outcome}): {e}", extra={**e.context, "feed_url": url})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Unexpected error polling feed: {e}", extra={"feed_url": url}, exc_info=True)

        return None

    async def run_health_check(self) -> bool:
        """Call the heartbeat endpoint; failures are logged only."""
        checker = self.context.health_checker
        if checker is None:
            return False

        try:
            await checker.ping()
            return True
        except HealthCheckError as e:
            self.logger.error(str(e), extra=e.context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Unexpected health check error: {e}", exc_info=True)
        return False

    async def start(self) -> int:
        """Initialise every feed, then register the timers.

        Feeds are initialised one after another; a failing feed is logged and
        skipped without affecting the others.

        Returns:
            Number of feeds being polled
        """
        for feed_config in self.settings.feeds:
            try:
                interval = await self.initialize_feed(feed_config)
            except FeedInitError as e:
                self.feed_states[feed_config.url] = FeedState.SKIPPED
                self.logger.error(str(e), extra={"feed_url": feed_config.url})
                continue

            self._start_timer(
                feed_config.url,
                interval * 60,
                lambda cfg=feed_config: self.check_feed(cfg),
            )
            self.feed_states[feed_config.url] = FeedState.POLLING

        checker = self.context.health_checker
        if checker is not None:
            self.logger.info(f"Setup health check, calling every {checker.interval_seconds:g} seconds")
            await self.run_health_check()
            self._start_timer(HEALTH_TIMER, checker.interval_seconds, self.run_health_check)

        polling = sum(1 for state in self.feed_states.values() if state is FeedState.POLLING)
        self.logger.info(f"Scheduler started: {polling}/{len(self.feed_states)} feed(s) polling")
        return polling

    def _start_timer(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable],
    ) -> None:
        token = asyncio.Event()
        self._tokens[name] = token
        self._timers[name] = asyncio.create_task(
            self._timer_loop(name, interval_seconds, callback, token),
            name=f"timer:{name}",
        )

    async def _timer_loop(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable],
        token: asyncio.Event,
    ) -> None:
        """Fire ``callback`` every ``interval_seconds`` until ``token`` is set."""
        loop = asyncio.get_running_loop()
        next_run = loop.time() + interval_seconds

        while not token.is_set():
            try:
                await asyncio.wait_for(token.wait(), timeout=max(0.0, next_run - loop.time()))
                break
            except asyncio.TimeoutError:
                pass

            next_run += interval_seconds
            self.logger.debug(f"Timer {name} fired")
            self._spawn(callback())

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    @property
    def timer_names(self):
        return list(self._timers)

    async def stop(self) -> None:
        """Set every cancellation token and wait for the timers to exit."""
        for token in self._tokens.values():
            token.set()

        if self._timers:
            await asyncio.gather(*self._timers.values(), return_exceptions=True)

        for task in list(self._in_flight):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

        self._timers.clear()
        self._tokens.clear()
        self._stopped.set()
        self.logger.info("Scheduler stopped")

    async def run_forever(self) -> None:
        """Start the scheduler and block until stop() is called."""
        await self.start()

        if not self._timers:
            self.logger.warning("No feed could be initialised and no health check is configured, exiting")
            return

        await self._stopped.wait()
