"""Offline snapshots of listings.

A snapshot is the ordered list of records last seen for a scope, kept in
the blob store so a listing can be served when the backend is unreachable
and the in-memory caches are empty (for example right after a restart).
"""

from __future__ import annotations

import asyncio
import logging

import orjson
from pydantic import ValidationError as PydanticValidationError

from clipvault.services.cache.persistence import PersistenceQueue
from clipvault.services.clip_models import ClipRecord, ResourceScope
from clipvault.services.storage import BlobStore
from clipvault.shared.cache_utils import generate_cache_key
from clipvault.shared.constants import StorageKeys
from clipvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from clipvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


def snapshot_key(scope: ResourceScope) -> str:
    """Blob key of a scope's snapshot, e.g. ``snapshot:project:p1``."""
    return generate_cache_key(StorageKeys.SNAPSHOT_PREFIX, scope.key)


class OfflineSnapshotStore:
    """Per-scope record lists mirrored to the blob store.

    Args:
        store: Namespaced blob store
        queue: Shared persistence writer
        max_records: Cap on the records kept per scope
    """

    def __init__(self, store: BlobStore, queue: PersistenceQueue, max_records: int) -> None:
        self._store = store
        self._queue = queue
        self.max_records = max_records
        self._snapshots: dict[str, list[ClipRecord]] = {}
        self._known: set[str] = set()

    async def load_index(self) -> None:
        """Learn which snapshot keys exist so ``clear`` can remove them."""
        raw = await asyncio.to_thread(self._store.get, StorageKeys.SNAPSHOT_INDEX)
        if not raw:
            return
        try:
            keys = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            self._log_corrupted(StorageKeys.SNAPSHOT_INDEX, str(e), e)
            return
        if isinstance(keys, list):
            self._known.update(str(k) for k in keys)

    async def read(self, scope: ResourceScope) -> list[ClipRecord]:
        """Return the scope's snapshot, loading it from the store if needed."""
        key = snapshot_key(scope)
        await self._ensure_loaded(key)
        return list(self._snapshots[key])

    async def write_page(
        self,
        scope: ResourceScope,
        offset: int,
        records: list[ClipRecord],
        *,
        last_page: bool = False,
    ) -> None:
        """Write one fetched page into the snapshot at ``offset``.

        A page that would leave a gap after the current end is skipped. The
        last page of a listing truncates anything stored after it.
        """
        key = snapshot_key(scope)
        await self._ensure_loaded(key)
        current = list(self._snapshots[key])
        if offset > len(current):
            logger.debug("Skipping snapshot write for %s at offset %d", key, offset)
            return

        current[offset : offset + len(records)] = records
        if last_page:
            del current[offset + len(records) :]
        self._replace(key, current)

    def replace(self, scope: ResourceScope, records: list[ClipRecord]) -> None:
        """Overwrite the scope's snapshot."""
        self._replace(snapshot_key(scope), list(records))

    def clear(self) -> None:
        """Drop every snapshot from memory and from the store."""
        keys = self._known | set(self._snapshots)
        self._snapshots.clear()
        self._known.clear()
        for key in keys:
            self._queue.schedule(key, lambda: None)
        self._queue.schedule(StorageKeys.SNAPSHOT_INDEX, lambda: None)

    def _replace(self, key: str, records: list[ClipRecord]) -> None:
        self._snapshots[key] = records[: self.max_records]
        self._queue.schedule(key, lambda: self._render(key))
        if key not in self._known:
            self._known.add(key)
            self._queue.schedule(StorageKeys.SNAPSHOT_INDEX, self._render_index)

    def _render(self, key: str) -> str | None:
        records = self._snapshots.get(key)
        if records is None:
            return None
        return orjson.dumps([r.to_storage() for r in records]).decode()

    def _render_index(self) -> str | None:
        if not self._known:
            return None
        return orjson.dumps(sorted(self._known)).decode()

    async def _ensure_loaded(self, key: str) -> None:
        if key not in self._snapshots:
            loaded = await self._load(key)
            self._snapshots.setdefault(key, loaded)

    async def _load(self, key: str) -> list[ClipRecord]:
        raw = await asyncio.to_thread(self._store.get, key)
        if not raw:
            return []
        try:
            items = orjson.loads(raw)
            records = [ClipRecord.from_storage(item) for item in items]
        except (orjson.JSONDecodeError, PydanticValidationError, TypeError) as e:
            self._log_corrupted(key, str(e), e)
            return []
        self._known.add(key)
        logger.debug("Loaded %d records from snapshot %s", len(records), key)
        return records

    @staticmethod
    def _log_corrupted(key: str, detail: str, original: Exception) -> None:
        error = InfrastructureError(
            code=ErrorCode.CACHE_CORRUPTED,
            message=f"Discarding unreadable snapshot: {detail}",
            context=ErrorContext(operation="load_snapshot", additional_data={"key": key}),
            original_error=original,
        )
        log_operation_error(logger=logger, error=error, level=logging.WARNING)
