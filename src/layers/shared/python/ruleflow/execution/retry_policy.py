"""Retry executor with exponential backoff.

Runs a single async operation up to ``max_retries + 1`` times. After the
n-th failure (0-based) the executor waits
``base_delay * backoff_multiplier ** n`` seconds, so the default
configuration waits 1s, 2s, then 4s before giving up.

Usage:
    result = await with_retry(
        send,
        RetryConfig(max_retries=3),
        retry_condition=lambda e: "invalid" not in str(e).lower(),
        on_retry=log_retry,
    )
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

RetryCondition = Callable[[Exception], bool]
RetryObserver = Callable[[Exception, int], Awaitable[Any] | Any]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Get the wait after a failed attempt.

        Args:
            attempt: 0-based index of the attempt that just failed.

        Returns:
            Delay in seconds.
        """
        return self.base_delay * (self.backoff_multiplier ** attempt)


@dataclass
class RetryMetrics:
    """Metrics for retry operations."""

    total_attempts: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    retries: int = 0
    total_delay_seconds: float = 0.0


def always_retry(error: Exception) -> bool:
    """Default retry condition."""
    return True


class RetryPolicy:
    """Retry executor bound to a configuration.

    Keeps counters across calls so a long-lived policy can report how much
    retrying it has done.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=5, base_delay=0.5))
        value = await policy.execute(operation)
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            sleep: Coroutine used to wait between attempts.
        """
        self.config = config or RetryConfig()
        self.sleep = sleep
        self.metrics = RetryMetrics()
        self.logger = logger.bind(service="retry_policy")

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        retry_condition: RetryCondition | None = None,
        on_retry: RetryObserver | None = None,
    ) -> T:
        """Execute an operation with retry logic.

        Args:
            operation: Zero-argument coroutine function.
            retry_condition: Returns False for errors that must not be retried.
            on_retry: Called with (error, retry_number) before each wait.

        Returns:
            The first successful result.

        Raises:
            Exception: The last error once retries are exhausted or refused.
        """
        should_retry = retry_condition or always_retry
        attempt = 0

        while True:
            self.metrics.total_attempts += 1
            try:
                result = await operation()
            except Exception as e:
                if attempt >= self.config.max_retries or not should_retry(e):
                    self.metrics.failed_operations += 1
                    self.logger.debug(
                        "Operation failed, not retrying",
                        error=str(e),
                        attempts=attempt + 1,
                    )
                    raise

                if on_retry is not None:
                    outcome = on_retry(e, attempt + 1)
                    if inspect.isawaitable(outcome):
                        await outcome

                delay = self.config.delay_for(attempt)
                self.metrics.retries += 1
                self.metrics.total_delay_seconds += delay

                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    attempt=attempt + 1,
                    next_delay=delay,
                )

                await self.sleep(delay)
                attempt += 1
            else:
                self.metrics.successful_operations += 1
                return result

    def get_metrics(self) -> dict[str, Any]:
        """Get retry metrics.

        Returns:
            Dict of metrics.
        """
        finished = self.metrics.successful_operations + self.metrics.failed_operations
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful_operations": self.metrics.successful_operations,
            "failed_operations": self.metrics.failed_operations,
            "retries": self.metrics.retries,
            "total_delay_seconds": self.metrics.total_delay_seconds,
            "success_rate": (
                self.metrics.successful_operations / finished if finished > 0 else 0.0
            ),
        }


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    retry_condition: RetryCondition | None = None,
    on_retry: RetryObserver | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Execute an operation with retry logic.

    Convenience function for one-off retries.

    Args:
        operation: Zero-argument coroutine function.
        config: Optional retry configuration.
        retry_condition: Returns False for errors that must not be retried.
        on_retry: Called with (error, retry_number) before each wait.
        sleep: Coroutine used to wait between attempts.

    Returns:
        Operation result.

    Raises:
        Exception: The last error if all retries fail.
    """
    policy = RetryPolicy(config, sleep=sleep)
    return await policy.execute(operation, retry_condition, on_retry)
