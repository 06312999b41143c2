"""
Batch rate limiter for per-exchange request fan-out.

Splits the requests for one exchange into fixed-size batches and paces
them with a pause between consecutive batches, so that no more than
``batch_size`` requests are in flight against a venue at once.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from crossarb.config.constants import (
    DEFAULT_GLOBAL_RATE_LIMIT_MS,
    DEFAULT_MAX_CONCURRENT_REQUESTS,
)


T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class BatchRateLimiter:
    """
    Fixed-window pacing between request batches.

    Batches are processed strictly in order by the caller; ``pause()``
    is awaited between batches, never after the last one.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
        interval_ms: int = DEFAULT_GLOBAL_RATE_LIMIT_MS,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize rate limiter with specified limits.

        Args:
            batch_size: Maximum concurrent requests per batch.
            interval_ms: Pause between batches in milliseconds.
            sleep: Awaitable sleep taking seconds (injectable for tests).
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if interval_ms < 0:
            raise ValueError("interval_ms cannot be negative")

        self._batch_size = batch_size
        self._interval_ms = interval_ms
        self._sleep = sleep
        self._pauses = 0

    def batches(self, items: Sequence[T]) -> list[list[T]]:
        """
        Partition items into consecutive batches.

        Example:
            >>> BatchRateLimiter(batch_size=2).batches([1, 2, 3])
            [[1, 2], [3]]
        """
        size = self._batch_size
        return [list(items[i : i + size]) for i in range(0, len(items), size)]

    async def pause(self) -> None:
        """Wait out the inter-batch interval."""
        self._pauses += 1
        if self._interval_ms > 0:
            await self._sleep(self._interval_ms / 1000.0)

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def pause_count(self) -> int:
        """Number of inter-batch pauses taken so far."""
        return self._pauses
