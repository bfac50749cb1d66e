import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class RequestCoalescer:
    """
    Collapses identical in-flight requests onto a single upstream call.

    The first caller for a key starts ``factory()``; concurrent callers with the
    same key await that same task. The registry entry is dropped as soon as the
    task settles, before any waiter resumes, so completed entries never linger.

    The shared call lives only as long as someone is waiting for it. Once the
    last waiter is cancelled the call itself is cancelled, which aborts an
    in-flight HTTP request or a queued rate-limit wait.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task] = {}
        self._waiters: dict[asyncio.Task, int] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    async def dedupe(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            # Shielded so one waiter being cancelled does not abort the call for the others.
            return await asyncio.shield(task)
        finally:
            self._leave(key, task)

    def _leave(self, key: str, task: asyncio.Task) -> None:
        remaining = self._waiters.get(task, 0) - 1
        if remaining > 0:
            self._waiters[task] = remaining
            return
        self._waiters.pop(task, None)
        if not task.done():
            if self._pending.get(key) is task:
                del self._pending[key]
            task.cancel()

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        self._waiters.pop(task, None)
        if not task.cancelled():
            # Mark the exception as retrieved; every waiter re-raises it on its own.
            task.exception()

    async def clear(self) -> None:
        tasks = list(self._pending.values())
        self._pending.clear()
        self._waiters.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
