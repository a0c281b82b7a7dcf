"""Upload progress event stream."""

from __future__ import annotations

import asyncio
from typing import Final

from typing_extensions import Self

_DONE: Final = object()


class UploadProgress:
    """Finite async stream of ``(bytes_sent, bytes_total)`` pairs.

    The uploader publishes events and calls ``finish`` when the upload
    ends, which ends iteration. A subscriber may stop early with ``close``;
    this only stops delivery, the upload itself keeps running.

    Example:
        >>> progress = UploadProgress()
        >>> task = asyncio.create_task(service.create(fields, path, progress=progress))
        >>> async for sent, total in progress:
        ...     print(f"{sent}/{total}")
        >>> record = await task
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._finished = False
        self.latest: tuple[int, int] | None = None

    @property
    def finished(self) -> bool:
        """Whether the uploader has signalled the end of the upload."""
        return self._finished

    def publish(self, bytes_sent: int, bytes_total: int) -> None:
        """Record progress; ignored once finished or closed."""
        if self._finished:
            return
        self.latest = (bytes_sent, bytes_total)
        if not self._closed:
            self._queue.put_nowait(self.latest)

    def finish(self) -> None:
        """Mark the upload as ended (success or failure)."""
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_DONE)

    def close(self) -> None:
        """Unsubscribe. Pending and future events are dropped."""
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> tuple[int, int]:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _DONE:
            self._closed = True
            raise StopAsyncIteration
        return item  # type: ignore[return-value]
