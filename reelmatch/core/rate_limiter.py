import asyncio
import time
from collections.abc import Callable

from loguru import logger

from reelmatch.core.cancellation import CancellationToken


class RateLimiter:
    """
    Fixed-window request budget shared by every upstream call.

    ``try_acquire`` is the non-blocking check. ``acquire`` queues callers that
    were denied in FIFO order and retries them after ``retry_delay`` seconds
    instead of dropping them.
    """

    def __init__(
        self,
        max_requests: int = 40,
        window: float = 1.0,
        retry_delay: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window = window
        self.retry_delay = retry_delay
        self._clock = clock
        self._window_start = clock()
        self._count = 0
        self._denied = 0
        # asyncio.Lock wakes waiters in arrival order, which gives the FIFO queue.
        self._queue = asyncio.Lock()

    @property
    def requests_in_window(self) -> int:
        return self._count

    def try_acquire(self) -> bool:
        now = self._clock()
        if now - self._window_start > self.window:
            self._window_start = now
            self._count = 0
        if self._count < self.max_requests:
            self._count += 1
            return True
        self._denied += 1
        return False

    async def acquire(self, cancel: CancellationToken | None = None) -> None:
        """Wait for a slot. Raises RequestCancelled if ``cancel`` fires while queued."""
        if cancel is not None:
            cancel.raise_if_cancelled()
        if not self._queue.locked() and self.try_acquire():
            return

        async with self._queue:
            waited = 0
            while not self.try_acquire():
                if waited == 0:
                    logger.debug(f"Rate limit reached ({self.max_requests}/{self.window}s), queueing request")
                waited += 1
                if cancel is not None:
                    await cancel.sleep(self.retry_delay)
                else:
                    await asyncio.sleep(self.retry_delay)

    def get_stats(self) -> dict[str, float | int]:
        return {
            "requests_in_window": self._count,
            "max_requests": self.max_requests,
            "window_seconds": self.window,
            "denied": self._denied,
            "queued": int(self._queue.locked()),
        }

    def reset(self) -> None:
        self._window_start = self._clock()
        self._count = 0
        self._denied = 0
