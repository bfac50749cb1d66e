import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

from reelmatch.core.errors import RequestCancelled

T = TypeVar("T")


class CancellationToken:
    """
    Cancellation scope for one end-user request.

    The same token is threaded through every adapter call, enrichment worker and
    retry sleep. Firing it aborts whatever is in flight and makes later work
    return empty results without issuing calls.
    """

    def __init__(self, parent: "CancellationToken | None" = None):
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._children: list[CancellationToken] = []
        if parent is not None:
            if parent.cancelled:
                self.cancel(parent.reason or "cancelled")
            else:
                parent._children.append(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for child in self._children:
            child.cancel(reason)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled(self._reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T], timeout: float | None = None) -> T:
        """
        Await ``awaitable`` unless the token fires or ``timeout`` elapses first.

        Raises RequestCancelled on cancellation and TimeoutError on expiry; in both
        cases the underlying work is cancelled.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestCancelled(self._reason or "cancelled")

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        if self.cancelled:
            raise RequestCancelled(self._reason or "cancelled")
        raise TimeoutError(f"Operation exceeded {timeout}s")

    async def sleep(self, delay: float) -> None:
        """Sleep that wakes up early (raising RequestCancelled) when the token fires."""
        await self.guard(asyncio.sleep(delay))

