"""Durable liked-state map.

Liked flags are user intent rather than fetched data, so they never expire
and survive item eviction. They are stored as one JSON object under the
``liked`` key of the cache namespace.
"""

from __future__ import annotations

import asyncio
import logging

import orjson

from clipvault.services.cache.persistence import PersistenceQueue
from clipvault.services.storage import BlobStore
from clipvault.shared.constants import StorageKeys
from clipvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from clipvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


class LikedStateStore:
    """In-memory liked flags mirrored to the blob store."""

    def __init__(self, store: BlobStore, queue: PersistenceQueue) -> None:
        self._store = store
        self._queue = queue
        self._liked: dict[str, bool] = {}

    def __len__(self) -> int:
        return len(self._liked)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._liked

    def get(self, record_id: str) -> bool | None:
        return self._liked.get(record_id)

    def set(self, record_id: str, liked: bool) -> None:
        if self._liked.get(record_id) is liked:
            return
        self._liked[record_id] = liked
        self._schedule()

    def restore(self, record_id: str, previous: bool | None) -> None:
        """Put back a value captured before a mutation."""
        if previous is None:
            if self._liked.pop(record_id, None) is None:
                return
            self._schedule()
        else:
            self.set(record_id, previous)

    def clear(self) -> None:
        self._liked.clear()
        self._schedule()

    async def load(self) -> int:
        """Load persisted flags.

        Flags already set in memory are newer and are kept. Both the object
        form and a plain list of liked ids are accepted.

        Returns:
            Number of flags loaded from the store
        """
        raw = await asyncio.to_thread(self._store.get, StorageKeys.LIKED)
        if not raw:
            return 0

        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            self._log_corrupted(f"Persisted liked state is not valid JSON: {e!s}", e)
            return 0

        if isinstance(data, list):
            loaded = {str(record_id): True for record_id in data}
        elif isinstance(data, dict):
            loaded = {str(k): bool(v) for k, v in data.items()}
        else:
            self._log_corrupted("Persisted liked state has an unexpected shape")
            return 0

        for record_id, liked in loaded.items():
            self._liked.setdefault(record_id, liked)
        logger.debug("Loaded %d liked flags", len(loaded))
        return len(loaded)

    def _schedule(self) -> None:
        self._queue.schedule(StorageKeys.LIKED, self._render)

    def _render(self) -> str | None:
        if not self._liked:
            return None
        return orjson.dumps(self._liked).decode()

    @staticmethod
    def _log_corrupted(message: str, original: Exception | None = None) -> None:
        error = InfrastructureError(
            code=ErrorCode.CACHE_CORRUPTED,
            message=message,
            context=ErrorContext(
                operation="load_liked_state",
                additional_data={"key": StorageKeys.LIKED},
            ),
            original_error=original,
        )
        log_operation_error(logger=logger, error=error, level=logging.WARNING)
