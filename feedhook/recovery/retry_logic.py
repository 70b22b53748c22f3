"""
FeedHook Retry Logic
===================

Async retry with bounded exponential backoff, used for feed fetches
and health-check calls.
"""

import asyncio
import random
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type, TypeVar
from dataclasses import dataclass, field

from ..utils.logging import get_logger_for_component


T = TypeVar('T')


class RetryStrategy(Enum):
    """Different retry strategy types."""
    FIXED_DELAY = "fixed_delay"              # Fixed interval between retries
    EXPONENTIAL_BACKOFF = "exponential"      # Exponentially increasing delays
    JITTERED_EXPONENTIAL = "jittered"        # Exponential with bounded random jitter


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3                    # Total attempts, including the first
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL_BACKOFF
    min_delay: float = 1.0                   # Floor for every delay, in seconds
    max_delay: float = 10.0                  # Ceiling for every delay, in seconds
    exponential_base: float = 2.0
    jitter: bool = False

    # Anything else propagates immediately
    retry_on_exceptions: Tuple[Type[BaseException], ...] = (Exception,)


@dataclass
class RetryAttempt:
    """Information about a failed attempt."""
    attempt_number: int
    delay: float
    exception: BaseException
    timestamp: datetime = field(default_factory=datetime.now)


class RetryExhaustedError(Exception):
    """Raised when every attempt failed; wraps the last exception."""

    def __init__(self, operation: str, attempts: List[RetryAttempt]):
        self.operation = operation
        self.attempts = attempts
        self.last_exception = attempts[-1].exception if attempts else None
        super().__init__(
            f"All {len(attempts)} attempts failed for {operation}: {self.last_exception}"
        )


class RetryManager:
    """Retry manager with bounded backoff strategies."""

    def __init__(self, config: Optional[RetryConfig] = None, component: str = 'retry_manager'):
        self.config = config or RetryConfig()
        self.logger = get_logger_for_component(component)

        self._delay_calculators = {
            RetryStrategy.FIXED_DELAY: self._calculate_fixed_delay,
            RetryStrategy.EXPONENTIAL_BACKOFF: self._calculate_exponential_delay,
            RetryStrategy.JITTERED_EXPONENTIAL: self._calculate_jittered_exponential_delay,
        }

    async def retry_async(self,
                          func: Callable[..., Awaitable[T]],
                          *args,
                          operation: Optional[str] = None,
                          config: Optional[RetryConfig] = None,
                          **kwargs) -> T:
        """
        Retry an async function with the configured strategy.

        Args:
            func: Async function to retry
            *args: Function arguments
            operation: Name used in log lines (defaults to the function name)
            config: Override default retry configuration
            **kwargs: Function keyword arguments

        Returns:
            Function result if any attempt succeeds

        Raises:
            RetryExhaustedError: If every attempt failed with a retryable exception
            Exception: A non-retryable exception, unchanged
        """
        retry_config = config or self.config
        name = operation or getattr(func, '__name__', 'operation')
        attempts: List[RetryAttempt] = []

        for attempt in range(1, retry_config.max_attempts + 1):
            try:
                result = await func(*args, **kwargs)

                if attempt > 1:
                    self.logger.info(f"Retry successful for {name} on attempt {attempt}")

                return result

            except asyncio.CancelledError:
                raise

            except retry_config.retry_on_exceptions as e:
                if attempt < retry_config.max_attempts:
                    delay = self.calculate_delay(attempt, retry_config)
                    attempts.append(RetryAttempt(attempt_number=attempt, delay=delay, exception=e))

                    self.logger.warning(
                        f"Attempt {attempt} failed for {name}: {e}. "
                        f"Retrying in {delay:.2f}s (attempt {attempt + 1}/{retry_config.max_attempts})"
                    )
                    await asyncio.sleep(delay)
                else:
                    attempts.append(RetryAttempt(attempt_number=attempt, delay=0.0, exception=e))
                    self.logger.error(f"All {retry_config.max_attempts} attempts failed for {name}")

        raise RetryExhaustedError(name, attempts)

    def calculate_delay(self, attempt: int, config: Optional[RetryConfig] = None) -> float:
        """Delay to wait after failed ``attempt``, clamped to [min_delay, max_delay]."""
        config = config or self.config

        calculator = self._delay_calculators.get(config.strategy, self._calculate_exponential_delay)
        delay = calculator(attempt, config)

        if config.jitter and config.strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
            # Add ±25% jitter
            jitter_amount = delay * 0.25
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(config.min_delay, min(delay, config.max_delay))

    def _calculate_fixed_delay(self, attempt: int, config: RetryConfig) -> float:
        return config.min_delay

    def _calculate_exponential_delay(self, attempt: int, config: RetryConfig) -> float:
        return config.min_delay * (config.exponential_base ** (attempt - 1))

    def _calculate_jittered_exponential_delay(self, attempt: int, config: RetryConfig) -> float:
        """Exponential backoff with full jitter above the floor."""
        exponential_delay = config.min_delay * (config.exponential_base ** (attempt - 1))
        return random.uniform(config.min_delay, max(config.min_delay, exponential_delay))
