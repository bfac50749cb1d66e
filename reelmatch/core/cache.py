import asyncio
import json
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic import BaseModel

Revalidator = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float
    size: int

    def is_stale(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0
    sets: int = 0
    deletes: int = 0
    revalidations: int = 0
    revalidation_failures: int = 0

    def snapshot(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in self.__slots__}


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def estimate_size(value: Any) -> int:
    """
    Approximate the memory cost of a cached value in bytes.

    Strings count their UTF-8 length, primitives a fixed width, and anything
    structured the size of its JSON encoding. Values that cannot be serialized
    are accounted as zero instead of failing the write.
    """
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if isinstance(value, (bool, int, float)):
        return 8
    try:
        if isinstance(value, BaseModel):
            return len(value.model_dump_json())
        return len(json.dumps(value, default=_to_jsonable))
    except (TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Could not estimate cache value size ({type(value).__name__}): {e}")
        return 0


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class LRUCache:
    """
    In-process LRU cache with TTL expiry, a memory budget and stale-while-revalidate reads.

    Entries live in an OrderedDict ordered from least to most recently used, so
    promotion and eviction are both O(1). A stale entry stays in place until a
    reader either drops it (plain ``get``) or refreshes it in the background
    (``get`` with a revalidator).
    """

    def __init__(
        self,
        max_entries: int = 1000,
        max_memory: int = 50 * 1024 * 1024,
        default_ttl: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.max_memory = max_memory
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._memory = 0
        self._stats = CacheStats()
        self._locks: dict[str, asyncio.Lock] = {}
        self._refreshing: dict[str, asyncio.Task] = {}
        self._cleanup_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    @property
    def memory_usage(self) -> int:
        return self._memory

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries.keys())

    def get(self, key: str, revalidate: Revalidator | None = None) -> Any | None:
        """
        Return the cached value for ``key`` or None.

        Fresh hits are promoted to most-recently-used. A stale entry is dropped
        when no revalidator is given; with one, the stale value is returned
        immediately and a single background refresh is scheduled. The refresh
        needs a running event loop, so outside one a stale entry is dropped as
        if no revalidator had been passed.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        if not entry.is_stale(self._clock()):
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.value

        if revalidate is None or not _loop_running():
            self._remove(key)
            self._stats.misses += 1
            return None

        self._entries.move_to_end(key)
        self._stats.stale_hits += 1
        self._schedule_refresh(key, revalidate, entry.ttl)
        return entry.value

    async def get_or_revalidate(self, key: str, revalidate: Revalidator, ttl: float | None = None) -> Any:
        """
        Stale-while-revalidate read.

        A miss awaits ``revalidate`` (serialized per key, so concurrent misses
        share one load), stores and returns its result. Errors on a miss reach
        the caller; errors during a background refresh are only logged.
        """
        value = self.get(key, revalidate)
        if value is not None:
            return value

        async with self._lock_for(key):
            # Another waiter may have filled the slot while we queued on the lock.
            entry = self._entries.get(key)
            if entry is not None and not entry.is_stale(self._clock()):
                self._entries.move_to_end(key)
                return entry.value
            value = await revalidate()
            if value is not None:
                self.set(key, value, ttl=ttl)
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """
        Insert or replace ``key``. Returns False if the value alone exceeds the memory budget.
        """
        size = estimate_size(value)
        if size > self.max_memory:
            logger.warning(f"Cache value for {key} is {size} bytes, larger than the {self.max_memory} byte budget")
            return False

        # Replacing a key releases its old size first so the accounting cannot drift.
        if key in self._entries:
            self._remove(key)

        while self._entries and (self._memory + size > self.max_memory or len(self._entries) >= self.max_entries):
            oldest_key, oldest = self._entries.popitem(last=False)
            self._memory -= oldest.size
            self._drop_lock(oldest_key)
            self._stats.evictions += 1

        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
            size=size,
        )
        self._memory += size
        self._stats.sets += 1
        return True

    def delete(self, key: str) -> bool:
        if key not in self._entries:
            return False
        self._remove(key)
        self._stats.deletes += 1
        return True

    def has(self, key: str) -> bool:
        """True only for entries that exist and have not expired. Does not touch LRU order."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_stale(self._clock())

    def invalidate_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            self.delete(key)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}
        self._memory = 0
        self._stats = CacheStats()

    def cleanup(self) -> int:
        """Remove every expired entry. Safe to call repeatedly."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_stale(now)]
        for key in expired:
            self._remove(key)
        if expired:
            logger.debug(f"Cache cleanup removed {len(expired)} expired entries")
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        stats = self._stats.snapshot()
        lookups = stats["hits"] + stats["stale_hits"] + stats["misses"]
        stats.update(
            size=len(self._entries),
            max_size=self.max_entries,
            memory_usage=self._memory,
            max_memory=self.max_memory,
            hit_rate=round((stats["hits"] + stats["stale_hits"]) / lookups, 4) if lookups else 0.0,
            pending_revalidations=len(self._refreshing),
        )
        return stats

    def start_cleanup(self, interval: float) -> asyncio.Task:
        """Run ``cleanup`` every ``interval`` seconds until ``shutdown``."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval))
        return self._cleanup_task

    async def shutdown(self) -> None:
        tasks = list(self._refreshing.values())
        if self._cleanup_task is not None:
            tasks.append(self._cleanup_task)
            self._cleanup_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refreshing.clear()

    async def _cleanup_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup()

    def _schedule_refresh(self, key: str, revalidate: Revalidator, ttl: float) -> None:
        if key in self._refreshing:
            return
        task = asyncio.create_task(self._refresh(key, revalidate, ttl))
        self._refreshing[key] = task
        task.add_done_callback(lambda _t, k=key: self._refreshing.pop(k, None))

    async def _refresh(self, key: str, revalidate: Revalidator, ttl: float) -> None:
        async with self._lock_for(key):
            self._stats.revalidations += 1
            try:
                value = await revalidate()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._stats.revalidation_failures += 1
                logger.warning(f"Background revalidation failed for {key}: {e}")
                return
            if value is None:
                return
            self.set(key, value, ttl=ttl)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._memory -= entry.size
        self._drop_lock(key)

    def _drop_lock(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
