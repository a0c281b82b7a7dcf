"""Cache entry types for the clip cache."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from clipvault.services.clip_models import ClipRecord, ResourceScope
from clipvault.shared.cache_utils import generate_cache_key

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with the time it was fetched.

    Attributes:
        value: The cached value
        cached_at: Clock reading at fetch time
        order: First-seen sequence number, preserved across refreshes
    """

    value: T
    cached_at: float
    order: int = 0

    def is_valid(self, now: float, ttl: float) -> bool:
        """Valid iff ``now - cached_at < ttl``."""
        return now - self.cached_at < ttl


@dataclass(frozen=True)
class PageKey:
    """Identifies one page of one listing."""

    scope: ResourceScope
    page: int
    page_size: int

    @property
    def key(self) -> str:
        return generate_cache_key(
            "page",
            self.scope.key,
            {"page": self.page, "size": self.page_size},
        )


@dataclass
class PageEntry:
    """Ordered ids of one fetched page plus the records as fetched.

    The records were all upserted by the same fetch that produced the page.
    """

    ids: tuple[str, ...]
    records: dict[str, ClipRecord]
    cached_at: float

    @classmethod
    def from_records(
        cls,
        records: list[ClipRecord],
        cached_at: float,
    ) -> PageEntry:
        return cls(
            ids=tuple(r.id for r in records),
            records={r.id: r for r in records},
            cached_at=cached_at,
        )

    def is_valid(self, now: float, ttl: float) -> bool:
        return now - self.cached_at < ttl

    def expire(self) -> None:
        """Mark the page stale without dropping it."""
        self.cached_at = -math.inf
