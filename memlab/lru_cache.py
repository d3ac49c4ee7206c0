"""A least-recently-used cache with per-entry validity bits."""

from __future__ import annotations

import logging
import sys
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Sequence

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheStats:
    """Hit and miss counters with the hit rate as a percentage."""

    hits: int
    misses: int
    hit_rate: float


@dataclass
class _Entry:
    value: Any
    valid: bool = True


class LRUCache:
    """Fixed-capacity cache that evicts the least recently used entry.

    An invalidated entry keeps its slot but reads as a miss until it is set
    again, much like a page whose valid bit is cleared.
    """

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self._items: OrderedDict[Hashable, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> Any:
        """Return the value for ``key``; raise KeyError on a miss."""
        with self._lock:
            entry = self._items.get(key)
            if entry is None or not entry.valid:
                self._misses += 1
                log.info("Cache miss: %s (like a page fault)", key)
                raise KeyError(key)
            self._items.move_to_end(key)
            self._hits += 1
            log.info("Cache hit: %s", key)
            return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        """Store ``value``, evicting the oldest entry when the cache is full."""
        with self._lock:
            entry = self._items.get(key)
            if entry is not None:
                entry.value = value
                entry.valid = True
                self._items.move_to_end(key)
                log.info("Cache update: %s", key)
                return
            if len(self._items) >= self.capacity:
                self._evict_oldest()
            self._items[key] = _Entry(value)
            log.info("Cache add: %s", key)

    def _evict_oldest(self) -> None:
        if self._items:
            key, _ = self._items.popitem(last=False)
            log.info("Cache evict: %s (like LRU page replacement)", key)

    def invalidate(self, key: Hashable) -> None:
        """Clear the valid bit of ``key`` without freeing its slot."""
        with self._lock:
            entry = self._items.get(key)
            if entry is not None:
                entry.valid = False
                log.info("Cache invalidate: %s", key)

    def remove(self, key: Hashable) -> None:
        """Drop ``key`` from the cache if present."""
        with self._lock:
            if self._items.pop(key, None) is not None:
                log.info("Cache remove: %s", key)

    def stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            rate = self._hits / total * 100 if total else 0.0
            return CacheStats(self._hits, self._misses, rate)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


@dataclass(frozen=True)
class CachedAPIResponse:
    """A response body together with the moment it was fetched."""

    data: Any
    timestamp: float


class APICache:
    """Caches simulated user lookups for ``ttl`` seconds."""

    fetch_latency = 0.1

    def __init__(
        self,
        capacity: int,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cache = LRUCache(capacity)
        self.ttl = ttl
        self._clock = clock

    def get_user_data(self, user_id: str) -> dict[str, Any]:
        key = f"user:{user_id}"
        try:
            cached: CachedAPIResponse = self.cache.get(key)
        except KeyError:
            pass
        else:
            if self._clock() - cached.timestamp < self.ttl:
                log.info("Returning cached user data: %s", user_id)
                return cached.data
            self.cache.invalidate(key)
            log.info("Cached data expired: %s", user_id)

        log.info("Calling external API: %s", user_id)
        if self.fetch_latency:
            time.sleep(self.fetch_latency)
        user_data: dict[str, Any] = {
            "id": user_id,
            "name": f"User{user_id}",
            "email": f"user{user_id}@example.com",
        }
        self.cache.set(key, CachedAPIResponse(user_data, self._clock()))
        return user_data


class DatabaseCache:
    """Caches simulated query results keyed by the query text."""

    query_latency = 0.05

    def __init__(self, capacity: int) -> None:
        self.cache = LRUCache(capacity)

    def execute_query(self, query: str) -> list[dict[str, Any]]:
        try:
            result = self.cache.get(query)
        except KeyError:
            pass
        else:
            log.info("Returning cached query result: %s", query)
            return result

        log.info("Running database query: %s", query)
        if self.query_latency:
            time.sleep(self.query_latency)
        result = [
            {"id": 1, "name": "Kim", "email": "kim@example.com"},
            {"id": 2, "name": "Lee", "email": "lee@example.com"},
        ]
        self.cache.set(query, result)
        return result


def main(argv: Sequence[str] | None = None) -> int:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    previous_level = log.level
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        print("=== LRU cache examples (page replacement) ===")

        print("\n1. Basic LRU behaviour:")
        cache = LRUCache(3)
        cache.set("A", "data A")
        cache.set("B", "data B")
        cache.set("C", "data C")
        cache.get("A")
        cache.get("B")
        cache.set("D", "data D")
        try:
            cache.get("C")
        except KeyError:
            print("C was evicted as expected")

        print("\n2. API response cache:")
        api_cache = APICache(10, 5.0)
        print(f"First result: {api_cache.get_user_data('123')}")
        print(f"Second result: {api_cache.get_user_data('123')}")
        print(f"Other user: {api_cache.get_user_data('456')}")

        print("\n3. Database query cache:")
        db_cache = DatabaseCache(5)
        print(f"First query: {len(db_cache.execute_query('SELECT * FROM users'))} rows")
        print(f"Second query: {len(db_cache.execute_query('SELECT * FROM users'))} rows")

        print("\n4. Cache statistics:")
        stats = cache.stats()
        print(f"Hits: {stats.hits}, misses: {stats.misses}, hit rate: {stats.hit_rate:.2f}%")
        print(f"Current size: {len(cache)}")

        print("\n5. Invalidation:")
        cache.invalidate("A")
        try:
            cache.get("A")
        except KeyError:
            print("A is invalidated and cannot be read")
    finally:
        log.removeHandler(handler)
        log.setLevel(previous_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())