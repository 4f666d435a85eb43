"""
Request pacing for provider calls.

A FIFO gate limiting how many operations run at once and how closely
their starts may follow each other.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestThrottle:
    """
    Bounded-concurrency, minimum-spacing FIFO scheduler.

    - At most ``max_concurrent`` operations run at once
    - Consecutive starts are at least ``min_interval`` seconds apart
    - Operations start in submission order; nothing is dropped

    The waiter queue and the in-flight counter are only touched from
    synchronous code on the event loop, so no lock is needed.

    Example:
        >>> throttle = RequestThrottle(max_concurrent=1, min_interval=0.2)
        >>> details = await throttle.schedule(lambda: client.place_details(place_id))
    """

    def __init__(self, max_concurrent: int = 1, min_interval: float = 0.2):
        """
        Initialize the throttle.

        Args:
            max_concurrent: Operations allowed in flight at once
            min_interval: Minimum seconds between consecutive starts
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval cannot be negative")

        self.max_concurrent = max_concurrent
        self.min_interval = min_interval

        self._waiters: deque[asyncio.Future] = deque()
        self._active = 0
        self._last_start: Optional[float] = None
        self._wake_handle: Optional[asyncio.TimerHandle] = None

        self._stats = {
            "submitted": 0,
            "started": 0,
            "completed": 0,
            "failed": 0,
            "max_in_flight_observed": 0,
        }

    @property
    def in_flight(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def schedule(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` once a slot and the start spacing allow it.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            The operation's result

        Raises:
            Exception: Whatever the operation raises
        """
        loop = asyncio.get_running_loop()
        ticket = loop.create_future()
        self._waiters.append(ticket)
        self._stats["submitted"] += 1
        self._wake_next()

        try:
            await ticket
        except asyncio.CancelledError:
            if ticket.done() and not ticket.cancelled():
                # Slot was granted just before cancellation; hand it on
                self._release()
            else:
                self._discard(ticket)
            raise

        try:
            result = await operation()
        except BaseException:
            self._stats["failed"] += 1
            raise
        else:
            self._stats["completed"] += 1
            return result
        finally:
            self._release()

    def _release(self) -> None:
        self._active -= 1
        self._wake_next()

    def _discard(self, ticket: asyncio.Future) -> None:
        try:
            self._waiters.remove(ticket)
        except ValueError:
            pass
        self._wake_next()

    def _wake_next(self) -> None:
        """Grant slots to queued waiters while capacity and spacing allow."""
        loop = asyncio.get_running_loop()

        while self._waiters and self._active < self.max_concurrent:
            if self._waiters[0].done():
                # Cancelled while queued
                self._waiters.popleft()
                continue

            now = loop.time()
            if self._last_start is not None:
                wait = self._last_start + self.min_interval - now
                if wait > 0:
                    if self._wake_handle is None:
                        self._wake_handle = loop.call_later(wait, self._on_timer)
                    return

            ticket = self._waiters.popleft()
            self._active += 1
            self._last_start = now
            self._stats["started"] += 1
            self._stats["max_in_flight_observed"] = max(
                self._stats["max_in_flight_observed"], self._active
            )
            ticket.set_result(None)

    def _on_timer(self) -> None:
        self._wake_handle = None
        self._wake_next()

    def get_statistics(self) -> dict[str, Any]:
        return {
            **self._stats,
            "in_flight": self.in_flight,
            "queued": self.queued,
            "max_concurrent": self.max_concurrent,
            "min_interval": self.min_interval,
        }
