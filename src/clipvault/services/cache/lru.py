"""Bounded LRU map used for the item and page caches."""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Hashable, Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheStats:
    """Statistics for cache performance monitoring."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate as a percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.hits / self.total_requests) * 100


class LRUCache(Generic[K, V]):
    """OrderedDict-backed map with least-recently-used eviction.

    ``get`` counts a hit or miss and refreshes recency; ``peek`` does
    neither. Not thread-safe: callers own it from a single event loop.

    Example:
        >>> cache: LRUCache[str, int] = LRUCache(max_size=2, name="demo")
        >>> cache.set("a", 1); cache.set("b", 2); cache.get("a")
        1
        >>> cache.set("c", 3)  # evicts "b"
        >>> "b" in cache
        False
    """

    def __init__(self, max_size: int, name: str = "default") -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.name = name
        self._data: OrderedDict[K, V] = OrderedDict()
        self.stats = CacheStats()

    def get(self, key: K) -> V | None:
        value = self._data.get(key)
        if value is None:
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        self._data.move_to_end(key)
        return value

    def peek(self, key: K) -> V | None:
        return self._data.get(key)

    def set(self, key: K, value: V) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            evicted, _ = self._data.popitem(last=False)
            self.stats.evictions += 1
            logger.debug("Evicted %s from %s cache", evicted, self.name)

    def pop(self, key: K) -> V | None:
        return self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[K]:
        return list(self._data)

    def values(self) -> list[V]:
        return list(self._data.values())

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._data))
