"""Background persistence of cache state to the blob store."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from clipvault.services.storage import BlobStore

logger = logging.getLogger(__name__)

Renderer = Callable[[], "str | None"]


class PersistenceQueue:
    """Single writer that persists the latest state of each key.

    Callers schedule a key together with a renderer. The renderer runs when
    the write actually happens, so several schedules of the same key before
    the writer gets to it collapse into one write of the newest state. A
    renderer returning None removes the key.

    Blob store calls run in a worker thread so the event loop never blocks
    on disk I/O.
    """

    def __init__(self, store: BlobStore) -> None:
        self._store = store
        self._pending: dict[str, Renderer] = {}
        self._task: asyncio.Task[None] | None = None
        self.writes = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, key: str, render: Renderer) -> None:
        """Queue a write of ``key``; must be called from the event loop."""
        self._pending[key] = render
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending:
            key = next(iter(self._pending))
            render = self._pending.pop(key)
            value = render()
            if value is None:
                await asyncio.to_thread(self._store.remove, key)
            else:
                await asyncio.to_thread(self._store.set, key, value)
            self.writes += 1
            logger.debug("Persisted %s", key)

    async def flush(self) -> None:
        """Wait until every scheduled write has landed."""
        while self._task is not None and not self._task.done():
            await self._task
