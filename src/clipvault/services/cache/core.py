"""Paginated clip cache with optimistic mutations and offline fallback.

CacheCore owns three layers of state:

- item cache: record id -> CacheEntry[ClipRecord], LRU-bounded
- page cache: PageKey -> PageEntry (ordered ids), LRU-bounded
- liked state: record id -> bool, durable and never expired

Every read-modify-write of these maps happens in synchronous code, so on a
single event loop no other coroutine can observe a half-applied change.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field, replace
from typing import Any, Callable, TypeVar

from clipvault.config.models import CacheSettings
from clipvault.services.cache.entries import CacheEntry, PageEntry, PageKey
from clipvault.services.cache.liked_state import LikedStateStore
from clipvault.services.cache.locks import KeyedLocks
from clipvault.services.cache.lru import CacheStats, LRUCache
from clipvault.services.cache.persistence import PersistenceQueue
from clipvault.services.cache.snapshot import OfflineSnapshotStore
from clipvault.services.clip_models import ClipRecord, MutationKind, ResourceScope
from clipvault.services.gateway import ResourceGateway
from clipvault.services.storage import BlobStore, NamespacedBlobStore
from clipvault.shared.constants import BASE_MINUTE, CacheConfig, NetworkConfig
from clipvault.shared.errors import (
    CacheExhaustedError,
    ClipVaultError,
    ErrorCode,
    ErrorContext,
    TransportError,
    TransportErrorKind,
    create_validation_error,
)
from clipvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class MutationIntent:
    """State captured before an optimistic update, used for rollback."""

    record_id: str
    kind: MutationKind
    previous: CacheEntry[ClipRecord] | None
    previous_liked: bool | None
    applied: ClipRecord
    generation: int = 0


@dataclass(frozen=True)
class CacheStatistics:
    """Read-only view of cache occupancy and counters."""

    items: int
    liked: int
    pages: int
    ttl_seconds: float
    fallbacks: int = 0
    pending_mutations: int = 0
    item_stats: CacheStats = field(default_factory=CacheStats)
    page_stats: CacheStats = field(default_factory=CacheStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "clip_cache_size": self.items,
            "liked_cache_size": self.liked,
            "page_cache_size": self.pages,
            "cache_expiry_minutes": self.ttl_seconds / BASE_MINUTE,
            "fallbacks": self.fallbacks,
            "pending_mutations": self.pending_mutations,
            "item_hit_rate": round(self.item_stats.hit_rate, 2),
            "page_hit_rate": round(self.page_stats.hit_rate, 2),
            "evictions": self.item_stats.evictions + self.page_stats.evictions,
        }


class CacheCore:
    """Cache of clip records in front of a ResourceGateway.

    Args:
        gateway: Backend gateway
        store: Durable blob store; keys are placed under ``settings.namespace``
        settings: Cache settings
        fetch_timeout: Upper bound in seconds for one list or item fetch
        clock: Monotonic clock in seconds, injectable for tests

    Example:
        >>> core = CacheCore(gateway, MemoryBlobStore())
        >>> await core.load()
        >>> page = await core.get_page(ResourceScope.all(), 1, 20)
        >>> await core.mutate(page[0].id, MutationKind.LIKE)
    """

    def __init__(
        self,
        gateway: ResourceGateway,
        store: BlobStore,
        settings: CacheSettings | None = None,
        *,
        fetch_timeout: float = NetworkConfig.FETCH_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or CacheSettings()
        self._gateway = gateway
        self._clock = clock
        self._fetch_timeout = fetch_timeout

        self._store = NamespacedBlobStore(store, self.settings.namespace)
        self._persistence = PersistenceQueue(self._store)
        self._liked = LikedStateStore(self._store, self._persistence)
        self._snapshots = OfflineSnapshotStore(
            self._store,
            self._persistence,
            self.settings.snapshot_max_records,
        )

        self._items: LRUCache[str, CacheEntry[ClipRecord]] = LRUCache(
            self.settings.max_items, name="items"
        )
        self._pages: LRUCache[PageKey, PageEntry] = LRUCache(
            self.settings.max_pages, name="pages"
        )
        self._order = itertools.count()
        self._locks = KeyedLocks()
        self._mutations: set[asyncio.Task[ClipRecord]] = set()
        self._fallbacks = 0
        # Bumped by clear_cache; rollbacks from an older generation are skipped
        self._generation = 0

        logger.info(
            "Initialized clip cache (ttl=%ss, max_items=%d, max_pages=%d)",
            self.settings.ttl,
            self.settings.max_items,
            self.settings.max_pages,
        )

    @property
    def ttl(self) -> float:
        return self.settings.ttl

    async def load(self) -> None:
        """Load persisted liked state and the snapshot index."""
        loaded = await self._liked.load()
        await self._snapshots.load_index()
        logger.debug("Cache loaded %d persisted liked flags", loaded)

    async def flush(self) -> None:
        """Wait for pending persistence writes."""
        await self._persistence.flush()

    async def get_page(
        self,
        scope: ResourceScope,
        page: int = CacheConfig.DEFAULT_PAGE,
        page_size: int = CacheConfig.DEFAULT_PAGE_SIZE,
        force_refresh: bool = False,
    ) -> list[ClipRecord]:
        """Return one page of a listing.

        A valid cached page is returned without any network call. Otherwise
        the page is fetched; if that fails the fallback chain is consulted.

        Raises:
            ValidationError: If page or page_size is below 1
            CacheExhaustedError: If the fetch failed and nothing is cached
        """
        if page < 1 or page_size < 1:
            raise create_validation_error(
                f"Invalid pagination: page={page}, page_size={page_size}",
                operation="get_page",
            )

        key = PageKey(scope, page, page_size)
        if not force_refresh:
            entry = self._pages.get(key)
            if entry is not None and entry.is_valid(self._clock(), self.ttl):
                logger.debug("Page cache hit: %s", key.key)
                return self._resolve_page(entry)

        try:
            records = await self._fetch(
                self._gateway.fetch_page(scope, page, page_size),
                operation="fetch_page",
            )
        except TransportError as e:
            return await self._fallback_page(key, e)

        result = self._store_page(key, records)
        if self.settings.offline_snapshot:
            await self._snapshots.write_page(
                scope,
                (page - 1) * page_size,
                result,
                last_page=len(result) < page_size,
            )
        return result

    async def get_by_id(self, record_id: str, force_refresh: bool = False) -> ClipRecord:
        """Return one record, fetching it when missing or stale.

        Raises:
            TransportError: If the fetch failed and the id was never cached
        """
        self._require_id(record_id, "get_by_id")

        entry = self._items.get(record_id)
        if entry is not None and not force_refresh and entry.is_valid(self._clock(), self.ttl):
            return self._merge(entry.value)

        try:
            record = await self._fetch(
                self._gateway.fetch_by_id(record_id),
                operation="fetch_by_id",
                record_id=record_id,
            )
        except TransportError as e:
            stale = self._items.peek(record_id)
            if stale is None:
                raise
            self._fallbacks += 1
            logger.warning(
                "Serving stale record %s after %s",
                record_id,
                e.code.value,
            )
            return self._merge(stale.value)

        return self._upsert_one(record, self._clock())

    def peek(self, record_id: str) -> ClipRecord | None:
        """Cached record of any freshness, without network access."""
        entry = self._items.peek(record_id)
        return None if entry is None else self._merge(entry.value)

    def is_liked(self, record_id: str) -> bool:
        liked = self._liked.get(record_id)
        if liked is not None:
            return liked
        entry = self._items.peek(record_id)
        return entry is not None and entry.value.is_liked

    async def mutate(self, record_id: str, kind: MutationKind) -> ClipRecord:
        """Apply a like or unlike optimistically, then confirm or roll back.

        Mutations on the same id run one at a time. Once the optimistic
        update is applied the mutation runs to completion even if the caller
        is cancelled.

        Returns:
            The record after the mutation

        Raises:
            TransportError: If the backend rejected the mutation (after rollback)
        """
        self._require_id(record_id, "mutate")

        await self._locks.acquire(record_id)
        intent = self._apply_optimistic(record_id, kind)
        task = asyncio.get_running_loop().create_task(self._settle(intent))
        self._mutations.add(task)
        task.add_done_callback(self._on_mutation_done)
        return await asyncio.shield(task)

    def upsert(self, records: list[ClipRecord]) -> list[ClipRecord]:
        """Insert records as freshly fetched; returns the merged views."""
        now = self._clock()
        return [self._upsert_one(record, now) for record in records]

    def invalidate_scope(self, scope: ResourceScope) -> int:
        """Expire every cached page of a scope; returns how many."""
        expired = 0
        for key in self._pages:
            if key.scope == scope:
                entry = self._pages.peek(key)
                if entry is not None:
                    entry.expire()
                    expired += 1
        logger.debug("Expired %d pages of scope %s", expired, scope.key)
        return expired

    async def save_snapshot(self, scope: ResourceScope, records: list[ClipRecord]) -> None:
        """Replace a scope's offline snapshot and persist it."""
        self._snapshots.replace(scope, records)
        await self._persistence.flush()

    async def load_snapshot(self, scope: ResourceScope) -> list[ClipRecord]:
        """Read a scope's offline snapshot into the item cache."""
        records = await self._snapshots.read(scope)
        return self.upsert(records)

    async def clear_cache(self) -> None:
        """Drop items, pages, liked state and snapshots, in memory and on disk."""
        self._generation += 1
        self._items.clear()
        self._pages.clear()
        self._liked.clear()
        self._snapshots.clear()
        await self._persistence.flush()
        logger.info("Cleared clip cache")

    def stats(self) -> CacheStatistics:
        return CacheStatistics(
            items=len(self._items),
            liked=len(self._liked),
            pages=len(self._pages),
            ttl_seconds=self.ttl,
            fallbacks=self._fallbacks,
            pending_mutations=len(self._mutations),
            item_stats=replace(self._items.stats),
            page_stats=replace(self._pages.stats),
        )

    async def _fetch(
        self,
        call: Awaitable[T],
        operation: str,
        record_id: str | None = None,
    ) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._fetch_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(
                TransportErrorKind.TIMEOUT,
                f"{operation} exceeded {self._fetch_timeout}s",
                context=ErrorContext(operation=operation, record_id=record_id),
                original_error=e,
            ) from e

    def _merge(self, record: ClipRecord) -> ClipRecord:
        liked = self._liked.get(record.id)
        if liked is None:
            return record
        return record.with_liked_overlay(liked)

    def _upsert_one(self, record: ClipRecord, now: float) -> ClipRecord:
        if record.liked_reported:
            self._liked.set(record.id, record.is_liked)
        merged = self._merge(record)
        existing = self._items.peek(record.id)
        order = existing.order if existing is not None else next(self._order)
        self._items.set(record.id, CacheEntry(merged, now, order))
        return merged

    def _store_page(self, key: PageKey, records: list[ClipRecord]) -> list[ClipRecord]:
        now = self._clock()
        merged = [self._upsert_one(record, now) for record in records]
        self._pages.set(key, PageEntry.from_records(merged, now))
        logger.debug("Cached page %s (%d records)", key.key, len(merged))
        return merged

    def _resolve_page(self, entry: PageEntry) -> list[ClipRecord]:
        records = []
        for record_id in entry.ids:
            item = self._items.get(record_id)
            record = item.value if item is not None else entry.records[record_id]
            records.append(self._merge(record))
        return records

    async def _fallback_page(self, key: PageKey, error: TransportError) -> list[ClipRecord]:
        stale = self._pages.peek(key)
        if stale is not None:
            self._fallbacks += 1
            logger.warning("Serving stale page %s after %s", key.key, error.code.value)
            return self._resolve_page(stale)

        start = (key.page - 1) * key.page_size
        end = start + key.page_size

        cached = sorted(
            (
                e
                for e in self._items.values()
                if e.cached_at != -math.inf and key.scope.includes(e.value)
            ),
            key=lambda e: e.order,
        )
        if cached[start:end]:
            self._fallbacks += 1
            logger.warning("Serving %s from cached items after %s", key.key, error.code.value)
            return [self._merge(e.value) for e in cached[start:end]]

        snapshot = await self._snapshots.read(key.scope)
        if snapshot[start:end]:
            self._fallbacks += 1
            logger.warning("Serving %s from offline snapshot after %s", key.key, error.code.value)
            return [self._merge(r) for r in snapshot[start:end]]

        if cached or snapshot:
            logger.debug("Page %s is past the end of every cached tier", key.key)
            return []

        exhausted = CacheExhaustedError(
            code=ErrorCode.CACHE_EXHAUSTED,
            message=f"No cached data for {key.key} after fetch failure",
            context=ErrorContext(
                operation="get_page",
                additional_data={"scope": key.scope.key, "page": key.page},
            ),
            original_error=error,
        )
        log_operation_error(logger=logger, error=exhausted, level=logging.WARNING)
        raise exhausted from error

    def _apply_optimistic(self, record_id: str, kind: MutationKind) -> MutationIntent:
        entry = self._items.peek(record_id)
        previous_liked = self._liked.get(record_id)

        if entry is not None:
            base = self._merge(entry.value)
            cached_at, order = entry.cached_at, entry.order
        else:
            # Never fetched: stays stale so the next read goes to the backend
            base = ClipRecord.placeholder(record_id)
            cached_at, order = -math.inf, next(self._order)

        applied = kind.apply(base)
        self._items.set(record_id, CacheEntry(applied, cached_at, order))
        self._liked.set(record_id, kind.liked)
        logger.debug("Applied optimistic %s to %s", kind.value, record_id)

        return MutationIntent(
            record_id=record_id,
            kind=kind,
            previous=entry,
            previous_liked=previous_liked,
            applied=applied,
            generation=self._generation,
        )

    async def _settle(self, intent: MutationIntent) -> ClipRecord:
        try:
            if self.settings.remote_mutations:
                await self._gateway.send_mutation(intent.record_id, intent.kind)
        except BaseException as e:
            self._rollback(intent)
            if isinstance(e, ClipVaultError):
                log_operation_error(
                    logger=logger,
                    error=e,
                    operation=f"mutate_{intent.kind.value}",
                    level=logging.WARNING,
                )
            raise
        finally:
            self._locks.release(intent.record_id)

        return self.peek(intent.record_id) or intent.applied

    def _rollback(self, intent: MutationIntent) -> None:
        if intent.generation != self._generation:
            logger.debug(
                "Cache cleared since %s on %s; no rollback",
                intent.kind.value,
                intent.record_id,
            )
            return
        if intent.previous is None:
            self._items.pop(intent.record_id)
        else:
            self._items.set(intent.record_id, intent.previous)
        self._liked.restore(intent.record_id, intent.previous_liked)
        logger.debug("Rolled back %s on %s", intent.kind.value, intent.record_id)

    def _on_mutation_done(self, task: asyncio.Task[ClipRecord]) -> None:
        self._mutations.discard(task)
        if not task.cancelled():
            # Retrieve so an abandoned failure is not reported as unhandled
            task.exception()

    @staticmethod
    def _require_id(record_id: str, operation: str) -> None:
        if not record_id:
            raise create_validation_error(
                "record_id is required",
                field="record_id",
                operation=operation,
            )
