"""Retry with exponential backoff for transient generation failures."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_PATTERNS: tuple[str, ...] = (
    "timeout",
    "econnrefused",
    "connection refused",
    "etimedout",
    "enotfound",
    "enetunreach",
    "out of memory",
    "rate limit",
    "server error",
    "503 service unavailable",
    "502 bad gateway",
)


def is_retryable_error(error: BaseException) -> bool:
    """True if the error message matches a known transient failure."""
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


@dataclass
class RetryConfig:
    """Configuration for retry strategy.

    Attributes:
        max_attempts: Total attempts including the first call.
        base_delay: Delay before the first retry (seconds).
        max_delay: Upper bound for any single delay (seconds).
        jitter: Scale each delay by a random factor in [0.5, 1.0).
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter: bool = True


class RetryStrategy:
    """Runs an async callable, retrying transient failures.

    Non-retryable errors are raised immediately; after the last attempt
    the last error is raised.

    Example:
        >>> strategy = RetryStrategy(RetryConfig(max_attempts=3))
        >>> result = await strategy.run(lambda: engine.generate(options))
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self._config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng

    @property
    def config(self) -> RetryConfig:
        return self._config

    def get_backoff_delay(self, attempt: int) -> float:
        """Calculate backoff delay for retry attempt.

        Args:
            attempt: Current attempt number (0-based).

        Returns:
            Delay in seconds before next attempt.
        """
        delay = min(self._config.base_delay * (2**attempt), self._config.max_delay)
        if self._config.jitter:
            delay *= 0.5 + self._rng() * 0.5
        return delay

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Determine if error should trigger another attempt.

        Args:
            error: The exception that occurred.
            attempt: Current attempt number (0-based).
        """
        if attempt >= self._config.max_attempts - 1:
            return False
        return is_retryable_error(error)

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        on_retry: Callable[[int, BaseException, float], None] | None = None,
    ) -> T:
        """Call ``fn`` until it succeeds or retries are exhausted.

        Args:
            fn: Zero-argument coroutine factory.
            on_retry: Called as ``on_retry(attempt, error, delay_seconds)``
                before each sleep; ``attempt`` is 1-based.
        """
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as e:
                if not is_retryable_error(e):
                    logger.warning(f"Non-retryable error: {e}")
                    raise
                if not self.should_retry(e, attempt):
                    logger.error(
                        f"Giving up after {self._config.max_attempts} attempts: {e}"
                    )
                    raise

                delay = self.get_backoff_delay(attempt)
                attempt += 1
                logger.info(
                    f"Retrying after error (attempt {attempt}/"
                    f"{self._config.max_attempts - 1}, {delay:.2f}s): {e}"
                )
                if on_retry is not None:
                    on_retry(attempt, e, delay)
                await self._sleep(delay)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Shorthand for ``RetryStrategy(config).run(fn, on_retry)``."""
    return await RetryStrategy(config).run(fn, on_retry)


__all__ = [
    "RETRYABLE_PATTERNS",
    "RetryConfig",
    "RetryStrategy",
    "is_retryable_error",
    "retry_with_backoff",
]
