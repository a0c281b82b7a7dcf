"""Paginated clip cache.

Exports the cache core and its building blocks.
"""

from __future__ import annotations

from .core import CacheCore, CacheStatistics, MutationIntent
from .entries import CacheEntry, PageEntry, PageKey
from .liked_state import LikedStateStore
from .locks import KeyedLocks
from .lru import CacheStats, LRUCache
from .persistence import PersistenceQueue
from .snapshot import OfflineSnapshotStore, snapshot_key

__all__ = [
    "CacheCore",
    "CacheEntry",
    "CacheStatistics",
    "CacheStats",
    "KeyedLocks",
    "LRUCache",
    "LikedStateStore",
    "MutationIntent",
    "OfflineSnapshotStore",
    "PageEntry",
    "PageKey",
    "PersistenceQueue",
    "snapshot_key",
]
