"""Clip service.

This module provides the public API screens use to read and change clips.
It delegates all caching to CacheCore; what it adds is input validation for
uploads, membership invalidation after a create, best-effort preloading
and lifecycle management of the gateway and blob store.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Callable

from clipvault.config import Settings, get_config
from clipvault.services.cache import CacheCore, CacheStatistics
from clipvault.services.clip_models import ClipRecord, MutationKind, ResourceScope
from clipvault.services.gateway import HttpClipGateway, ResourceGateway, UploadProgress
from clipvault.services.storage import BlobStore, create_blob_store
from clipvault.shared.constants import APIFields, CacheConfig
from clipvault.shared.errors import ClipVaultError, create_validation_error
from clipvault.shared.logging import (
    log_operation_error,
    log_operation_success,
    setup_structured_logger,
)

logger = logging.getLogger(__name__)


class ClipService:
    """Paginated, cached access to clips.

    Args:
        gateway: Backend gateway
        store: Durable blob store for liked state and offline snapshots
        settings: Application settings (defaults to the process config)
        clock: Monotonic clock, injectable for tests

    Example:
        >>> async with ClipService.from_settings() as service:
        ...     clips = await service.list(page=1, page_size=20)
        ...     await service.like(clips[0].id)
    """

    def __init__(
        self,
        gateway: ResourceGateway,
        store: BlobStore,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_config()
        self._gateway = gateway
        self._store = store
        self._owns_resources = False
        self._opened = False
        self.cache = CacheCore(
            gateway,
            store,
            self.settings.cache,
            fetch_timeout=self.settings.api.fetch_timeout,
            clock=clock,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        token_provider: Callable[[], str | None] | None = None,
        configure_logging: bool = False,
    ) -> ClipService:
        """Build a service with an HTTP gateway and the configured blob store.

        The service owns both and closes them in ``close``.
        """
        settings = settings or get_config()
        if configure_logging:
            setup_structured_logger(
                level=settings.logging.level,
                log_file=settings.logging.file,
                use_rich_console=settings.logging.rich_console,
            )

        service = cls(
            HttpClipGateway(settings.api, token_provider=token_provider),
            create_blob_store(settings.storage),
            settings,
        )
        service._owns_resources = True
        return service

    async def __aenter__(self) -> ClipService:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def open(self) -> None:
        """Load persisted cache state. Safe to call more than once."""
        if self._opened:
            return
        await self.cache.load()
        self._opened = True

    async def close(self) -> None:
        """Flush pending writes and release owned resources."""
        await self.cache.flush()
        if self._owns_resources:
            if isinstance(self._gateway, HttpClipGateway):
                await self._gateway.close()
            close_store = getattr(self._store, "close", None)
            if close_store is not None:
                close_store()
        self._opened = False

    async def list(
        self,
        page: int = CacheConfig.DEFAULT_PAGE,
        page_size: int = CacheConfig.DEFAULT_PAGE_SIZE,
        force_refresh: bool = False,
        project_id: str | None = None,
    ) -> list[ClipRecord]:
        """List clips, optionally restricted to one project."""
        scope = ResourceScope.project(project_id) if project_id else ResourceScope.all()
        return await self.cache.get_page(scope, page, page_size, force_refresh)

    async def list_by_project(
        self,
        project_id: str,
        page: int = CacheConfig.DEFAULT_PAGE,
        page_size: int = CacheConfig.DEFAULT_PAGE_SIZE,
        force_refresh: bool = False,
    ) -> list[ClipRecord]:
        return await self.cache.get_page(
            ResourceScope.project(project_id),
            page,
            page_size,
            force_refresh,
        )

    async def get_by_id(self, record_id: str, force_refresh: bool = False) -> ClipRecord:
        return await self.cache.get_by_id(record_id, force_refresh)

    def peek(self, record_id: str) -> ClipRecord | None:
        """Cached record without network access, for rendering."""
        return self.cache.peek(record_id)

    def is_liked(self, record_id: str) -> bool:
        return self.cache.is_liked(record_id)

    async def like(self, record_id: str) -> ClipRecord:
        return await self.cache.mutate(record_id, MutationKind.LIKE)

    async def unlike(self, record_id: str) -> ClipRecord:
        return await self.cache.mutate(record_id, MutationKind.UNLIKE)

    async def create(
        self,
        fields: dict[str, Any],
        file_path: str | Path,
        progress: UploadProgress | None = None,
        thumbnail_path: str | Path | None = None,
    ) -> ClipRecord:
        """Upload a new clip.

        Besides the video file, a non-blank ``title`` is required. This is a
        deliberate local check: an untitled clip is rejected before any bytes
        are sent.

        Args:
            fields: Form fields; ``title`` must be non-blank
            file_path: Video file to upload
            progress: Optional progress stream for the upload
            thumbnail_path: Optional thumbnail image

        Returns:
            The created clip, already cached

        Raises:
            ValidationError: If the title or the file is missing (no request is made)
            TransportError: If the upload fails
        """
        try:
            self._validate_upload(fields, file_path, thumbnail_path)
        except ClipVaultError:
            if progress is not None:
                progress.finish()
            raise

        start = time.perf_counter()
        record = await self._gateway.upload(
            fields,
            Path(file_path),
            progress,
            Path(thumbnail_path) if thumbnail_path is not None else None,
        )

        [merged] = self.cache.upsert([record])
        for scope in ResourceScope.affected_by(record):
            self.cache.invalidate_scope(scope)

        log_operation_success(
            logger=logger,
            operation="create_clip",
            duration_ms=(time.perf_counter() - start) * 1000,
            result_info={"record_id": record.id},
        )
        return merged

    async def preload(self, record_ids: Iterable[str]) -> int:
        """Warm the item cache for ``record_ids``.

        Failures are logged and ignored.

        Returns:
            Number of the requested ids that are now cached
        """
        ids = list(dict.fromkeys(i for i in record_ids if i))
        await asyncio.gather(*(self._preload_one(record_id) for record_id in ids))
        cached = sum(1 for record_id in ids if self.cache.peek(record_id) is not None)
        logger.debug("Preloaded %d of %d clips", cached, len(ids))
        return cached

    async def clear_cache(self) -> None:
        await self.cache.clear_cache()

    def stats(self) -> CacheStatistics:
        return self.cache.stats()

    async def cache_locally(self, records: list[ClipRecord]) -> None:
        """Store ``records`` as the offline snapshot of the full listing."""
        self.cache.upsert(records)
        await self.cache.save_snapshot(ResourceScope.all(), records)
        logger.debug("Cached %d clips locally", len(records))

    async def load_cached_locally(self) -> list[ClipRecord]:
        """Load the offline snapshot of the full listing into the cache."""
        records = await self.cache.load_snapshot(ResourceScope.all())
        logger.debug("Loaded %d clips from local storage", len(records))
        return records

    async def _preload_one(self, record_id: str) -> None:
        try:
            await self.cache.get_by_id(record_id)
        except ClipVaultError as e:
            log_operation_error(
                logger=logger,
                error=e,
                operation="preload",
                level=logging.DEBUG,
            )

    @staticmethod
    def _validate_upload(
        fields: dict[str, Any],
        file_path: str | Path | None,
        thumbnail_path: str | Path | None,
    ) -> None:
        title = str(fields.get(APIFields.TITLE) or "").strip()
        if not title:
            raise create_validation_error(
                "Clip title is required",
                field=APIFields.TITLE,
                operation="create_clip",
            )
        if file_path is None or not Path(file_path).is_file():
            raise create_validation_error(
                f"Video file not found: {file_path}",
                field=APIFields.FILE,
                operation="create_clip",
            )
        if thumbnail_path is not None and not Path(thumbnail_path).is_file():
            raise create_validation_error(
                f"Thumbnail file not found: {thumbnail_path}",
                field=APIFields.THUMBNAIL,
                operation="create_clip",
            )
