"""Bounded in-memory LRU cache used by every memoized aggregation step."""

import threading
from collections import OrderedDict
from contextlib import nullcontext
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from clinic_analytics.core.logging import get_logger
from clinic_analytics.observability.metrics import (
    record_cache_access,
    record_cache_eviction,
    record_cache_size,
)

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class BoundedCache(Generic[K, V]):
    """Fixed-capacity key/value store with least-recently-used eviction.

    The cache is a memory bound, never a source of truth: every value must be
    re-derivable from the raw records. A capacity of zero or less disables
    caching entirely, turning every lookup into a miss.

    Args:
        capacity: Maximum number of entries held at once.
        name: Label used in logs and prometheus metrics.
        thread_safe: Guard reads and writes with a lock. LRU promotion mutates
            ordering, so instances shared across threads need this.
    """

    def __init__(self, capacity: int, name: str = "cache", thread_safe: bool = False):
        self.capacity = capacity
        self.name = name
        self._store: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock() if thread_safe else nullcontext()
        self.cache_stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "evictions": 0,
        }
        if capacity <= 0:
            logger.warning("Cache capacity is not positive, caching disabled", cache=name, capacity=capacity)

    @property
    def enabled(self) -> bool:
        return self.capacity > 0

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Return the cached value and promote it, or ``default`` on a miss."""
        with self._lock:
            value = self._store.get(key, _MISSING) if self.enabled else _MISSING
            if value is _MISSING:
                self.cache_stats["misses"] += 1
                record_cache_access(self.name, hit=False)
                return default
            self._store.move_to_end(key)
            self.cache_stats["hits"] += 1
        record_cache_access(self.name, hit=True)
        return value

    def set(self, key: K, value: V) -> None:
        """Insert or update ``key`` as the most recently used entry."""
        if not self.enabled:
            return
        with self._lock:
            if key in self._store:
                self._store.move_to_end(key)
            elif len(self._store) >= self.capacity:
                evicted, _ = self._store.popitem(last=False)
                self.cache_stats["evictions"] += 1
                record_cache_eviction(self.name, len(self._store))
                logger.debug("Evicted cache entry", cache=self.name, key=repr(evicted))
            self._store[key] = value
            self.cache_stats["sets"] += 1
            size = len(self._store)
        record_cache_size(self.name, size)

    def get_or_set(self, key: K, factory: Callable[[], V]) -> V:
        """Get from cache or compute with ``factory`` and store the result."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = factory()
        self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
        record_cache_size(self.name, 0)

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        # Membership checks do not count as access and never promote.
        with self._lock:
            return key in self._store

    def keys(self) -> list:
        """Keys ordered from least to most recently used."""
        with self._lock:
            return list(self._store.keys())

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            stats = dict(self.cache_stats)
            size = len(self._store)
        total_requests = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total_requests * 100) if total_requests > 0 else 0

        return {
            **stats,
            "hit_rate": hit_rate,
            "total_requests": total_requests,
            "size": size,
            "capacity": self.capacity,
        }
