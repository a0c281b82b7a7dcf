"""Cache configuration model.

This module contains the cache configuration model for managing
expiry, capacity bounds, offline snapshots and mutation mode.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from clipvault.shared.constants import CacheConfig, StorageKeys


class CacheSettings(BaseModel):
    """Cache configuration.

    ``remote_mutations`` selects how like/unlike behave. When true the
    gateway is called and failures roll the optimistic update back. When
    false mutations are purely local: optimistic state plus persisted
    liked-state is final.
    """

    ttl: int = Field(
        default=CacheConfig.EXPIRY,
        gt=0,
        description="Entry validity window in seconds",
    )
    max_items: int = Field(
        default=CacheConfig.MAX_ITEMS,
        gt=0,
        description="Maximum number of cached records (LRU)",
    )
    max_pages: int = Field(
        default=CacheConfig.MAX_PAGES,
        gt=0,
        description="Maximum number of cached pages (LRU)",
    )
    snapshot_max_records: int = Field(
        default=CacheConfig.SNAPSHOT_MAX_RECORDS,
        gt=0,
        description="Maximum records kept in an offline snapshot",
    )
    offline_snapshot: bool = Field(
        default=True,
        description="Persist fetched pages for offline fallback",
    )
    remote_mutations: bool = Field(
        default=True,
        description="Send like/unlike to the backend",
    )
    namespace: str = Field(
        default=StorageKeys.DEFAULT_NAMESPACE,
        min_length=1,
        description="Blob store key namespace",
    )


__all__ = ["CacheSettings"]
