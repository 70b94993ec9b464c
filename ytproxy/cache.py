"""In-memory response cache with per-entry TTL and LRU eviction."""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ytproxy.config import Config
from ytproxy.models import CacheEntry

logger = logging.getLogger(__name__)

_MISSING = object()


def make_cache_key(resource: str, params: Mapping[str, object]) -> str:
    """Build a stable fingerprint: ``resource:k1=v1&k2=v2`` with sorted keys.

    Empty values are dropped so ``?q=a&pageToken=`` and ``?q=a`` share a slot.
    """
    parts = [
        f"{name}={value}"
        for name, value in sorted(params.items())
        if value is not None and str(value) != ""
    ]
    return f"{resource}:{'&'.join(parts)}"


class ResponseCache:
    """Successful upstream payloads keyed by request fingerprint.

    Entries expire ``ttl`` seconds after they were stored. Reads do not extend
    the lifetime but do refresh the LRU position. Only successful fetches are
    stored.
    """

    def __init__(self, capacity: int = 500, ttl: float = 1800.0):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl = ttl
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock: asyncio.Lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @classmethod
    def from_config(cls, config: Config) -> "ResponseCache":
        return cls(capacity=config.cache_capacity, ttl=config.cache_ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(time.monotonic())

    async def get(self, key: str, default: Any = None) -> Any:
        async with self._lock:
            value = self._lookup(key)
        return default if value is _MISSING else value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            self._store(key, value, ttl)

    async def invalidate(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        async with self._lock:
            cached = self._lookup(key)
        if cached is not _MISSING:
            logger.debug("Cache HIT: %s", key)
            return cached

        logger.debug("Cache MISS: %s", key)
        value = await fetcher()

        async with self._lock:
            self._store(key, value, ttl)
        return value

    def stats(self) -> Dict[str, object]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl_seconds": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return _MISSING
        if entry.is_expired(time.monotonic()):
            del self._entries[key]
            self.misses += 1
            return _MISSING

        entry.hits += 1
        self.hits += 1
        self._entries.move_to_end(key)
        return entry.value

    def _store(self, key: str, value: Any, ttl: Optional[float]) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            stored_at=time.monotonic(),
            ttl=self.ttl if ttl is None else ttl,
        )
        self._entries.move_to_end(key)

        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug("Cache evicted LRU entry: %s", evicted)
