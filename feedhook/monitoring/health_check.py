"""
Health Check Heartbeat
======================

Calls a monitoring endpoint so an external service can tell the engine is
alive. Failures are reported to the caller as HealthCheckError and are never
fatal.
"""

import aiohttp

from ..config.settings import HealthCheckSettings, HealthRetrySettings
from ..recovery.retry_logic import RetryConfig, RetryExhaustedError, RetryManager, RetryStrategy
from ..utils.exceptions import HealthCheckError
from ..utils.logging import get_logger_for_component


class HealthChecker:
    """Heartbeat caller with a small retry budget."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: HealthCheckSettings,
        retry_settings: HealthRetrySettings,
    ):
        self.session = session
        self.config = config
        self.logger = get_logger_for_component("health_check")
        self.retry_manager = RetryManager(
            RetryConfig(
                max_attempts=retry_settings.max_attempts,
                strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
                min_delay=retry_settings.min_delay,
                max_delay=retry_settings.max_delay,
            ),
            component="health_check",
        )

    @property
    def interval_seconds(self) -> float:
        return self.config.interval

    async def ping(self) -> int:
        """Call the endpoint once, retrying within the budget.

        Returns:
            HTTP status of the successful call

        Raises:
            HealthCheckError: If every attempt failed
        """
        self.logger.info("Posting health check request")
        try:
            return await self.retry_manager.retry_async(
                self._call, operation=f"health check {self.config.method} {self.config.endpoint}"
            )
        except RetryExhaustedError as e:
            raise HealthCheckError(
                f"Health check failed after {len(e.attempts)} attempts: {e.last_exception}",
                endpoint=self.config.endpoint,
            ) from e.last_exception

    async def _call(self) -> int:
        # No body; any response counts, only transport errors fail
        async with self.session.request(self.config.method, self.config.endpoint) as response:
            return response.status
