"""
Exponential backoff for provider calls.

Wraps a single fallible async call and retries it with exponentially
growing delays until it succeeds or the attempt budget is spent.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..utils.exceptions import (
    AuthError,
    BadRequestError,
    ConfigurationError,
    UpstreamExhaustionError,
    UpstreamResponseError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that cannot succeed on repetition
DEFAULT_NON_RETRYABLE: tuple[type[BaseException], ...] = (
    UpstreamResponseError,
    AuthError,
    BadRequestError,
    ConfigurationError,
)


class BackoffExecutor:
    """
    Retry a zero-argument coroutine factory with exponential delays.

    The delay before attempt ``k + 1`` is ``min(base_delay * 2**k, max_delay)``,
    so delays never decrease. When every attempt fails an
    ``UpstreamExhaustionError`` is raised, chained to the last failure.

    Example:
        >>> backoff = BackoffExecutor(max_attempts=3, base_delay=0.5)
        >>> details = await backoff.execute(
        ...     lambda: client.place_details(place_id),
        ...     description=f"place_details({place_id})",
        ... )
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        non_retryable: tuple[type[BaseException], ...] = DEFAULT_NON_RETRYABLE,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the executor.

        Args:
            max_attempts: Total attempts, including the first
            base_delay: Delay in seconds before the first retry
            max_delay: Cap on any single delay
            non_retryable: Exception types propagated without retry
            sleep: Awaitable sleep function (injectable for tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays cannot be negative")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.non_retryable = non_retryable
        self._sleep = sleep

        self._stats = {
            "attempts": 0,
            "retries": 0,
            "successes": 0,
            "exhausted": 0,
        }

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry ``retry_index`` (0 for the first retry)."""
        return min(self.base_delay * (2 ** retry_index), self.max_delay)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        description: Optional[str] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt
            description: Label used in logs and in the exhaustion error

        Returns:
            Result of the first successful attempt

        Raises:
            UpstreamExhaustionError: Every attempt failed with a retryable error
            Exception: Non-retryable failures, unchanged
        """
        label = description or getattr(operation, "__name__", "operation")
        last_error: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            self._stats["attempts"] += 1
            try:
                result = await operation()
                self._stats["successes"] += 1
                return result

            except self.non_retryable:
                raise

            except Exception as e:
                last_error = e

                if attempt < self.max_attempts - 1:
                    delay = self.delay_for(attempt)
                    self._stats["retries"] += 1
                    logger.warning(
                        "Retrying after failure",
                        extra={
                            "operation": label,
                            "attempt": attempt + 1,
                            "max_attempts": self.max_attempts,
                            "delay": delay,
                            "error": str(e),
                        },
                    )
                    await self._sleep(delay)

        self._stats["exhausted"] += 1
        logger.error(
            "Max attempts exceeded",
            extra={"operation": label, "attempts": self.max_attempts},
        )
        raise UpstreamExhaustionError(
            f"{label} failed after {self.max_attempts} attempts",
            operation=label,
            attempts=self.max_attempts,
            last_error=last_error,
        ) from last_error

    def get_statistics(self) -> dict[str, int]:
        return dict(self._stats)
