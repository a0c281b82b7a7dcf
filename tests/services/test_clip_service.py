"""Tests for the ClipService facade."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from conftest import FakeGateway

from clipvault.config import Settings
from clipvault.services import ClipRecord, ClipService
from clipvault.services.gateway import HttpClipGateway, ResourceGateway, UploadProgress
from clipvault.services.storage import MemoryBlobStore, SQLiteBlobStore
from clipvault.shared.errors import (
    ErrorCode,
    TransportError,
    ValidationError,
)


@pytest.fixture
def service(gateway, blob_store, settings, clock) -> ClipService:
    return ClipService(gateway, blob_store, settings, clock=clock)


@pytest.fixture
def video_file(temp_dir: Path) -> Path:
    path = temp_dir / "clip.mp4"
    path.write_bytes(b"\x00" * 2048)
    return path


class TestListing:
    """list and list_by_project."""

    @pytest.mark.asyncio
    async def test_list_returns_server_order(self, service):
        clips = await service.list(page=1, page_size=2)

        assert [c.id for c in clips] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_list_with_project_id(self, service, gateway):
        clips = await service.list(page=1, page_size=10, project_id="p2")

        assert [c.id for c in clips] == ["c"]
        assert gateway.page_calls == [("project:p2", 1, 10)]

    @pytest.mark.asyncio
    async def test_list_by_project_shares_cache_with_list(self, service, gateway):
        await service.list_by_project("p1", page=1, page_size=10)
        await service.list(page=1, page_size=10, project_id="p1")

        assert len(gateway.page_calls) == 1

    @pytest.mark.asyncio
    async def test_list_by_project_requires_id(self, service):
        with pytest.raises(ValidationError):
            await service.list_by_project("")


class TestLikes:
    """like, unlike and is_liked."""

    @pytest.mark.asyncio
    async def test_like_then_get_by_id_is_cached(self, service, gateway):
        await service.list(page=1, page_size=2)

        await service.like("a")
        clip = await service.get_by_id("a")

        assert (clip.like_count, clip.is_liked) == (1, True)
        assert gateway.item_calls == []
        assert service.is_liked("a") is True

    @pytest.mark.asyncio
    async def test_unlike_after_like(self, service):
        await service.list(page=1, page_size=3)

        await service.like("c")
        clip = await service.unlike("c")

        assert (clip.like_count, clip.is_liked) == (5, False)
        assert service.is_liked("c") is False

    @pytest.mark.asyncio
    async def test_failed_like_raises_to_caller(self, service, gateway):
        await service.list(page=1, page_size=3)
        gateway.fail_mutations = True

        with pytest.raises(TransportError):
            await service.like("c")

        assert service.peek("c").like_count == 5


class TestCreate:
    """create validates, uploads and invalidates listings."""

    @pytest.mark.asyncio
    async def test_create_uploads_and_caches(self, service, gateway, video_file):
        record = await service.create({"title": "Tour", "projectId": "p1"}, video_file)

        assert record.title == "Tour"
        assert service.peek(record.id) is not None
        assert gateway.upload_calls[0]["file_path"] == video_file

    @pytest.mark.asyncio
    async def test_create_invalidates_pages_but_keeps_items(self, service, gateway, video_file):
        # Given cached listings for all clips and for project p1
        await service.list(page=1, page_size=10)
        await service.list_by_project("p1", page=1, page_size=10)
        await service.list_by_project("p2", page=1, page_size=10)
        calls = len(gateway.page_calls)

        # When a clip is created in p1
        record = await service.create({"title": "New", "projectId": "p1"}, video_file)

        # Then both affected listings refetch and include it
        clips = await service.list(page=1, page_size=10)
        p1 = await service.list_by_project("p1", page=1, page_size=10)
        await service.list_by_project("p2", page=1, page_size=10)

        assert len(gateway.page_calls) == calls + 2
        assert record.id in [c.id for c in clips]
        assert record.id in [c.id for c in p1]
        assert service.peek("a") is not None

    @pytest.mark.asyncio
    async def test_create_without_file_makes_no_call(self, service, gateway, temp_dir):
        with pytest.raises(ValidationError) as exc_info:
            await service.create({"title": "Tour"}, temp_dir / "missing.mp4")

        assert exc_info.value.code is ErrorCode.MISSING_REQUIRED_FIELD
        assert exc_info.value.context.additional_data == {"field": "file"}
        assert gateway.upload_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   ", None])
    async def test_create_requires_title(self, service, gateway, video_file, title):
        with pytest.raises(ValidationError):
            await service.create({"title": title}, video_file)

        assert gateway.upload_calls == []

    @pytest.mark.asyncio
    async def test_create_missing_thumbnail_rejected(self, service, gateway, video_file):
        with pytest.raises(ValidationError):
            await service.create({"title": "Tour"}, video_file, thumbnail_path="nope.jpg")

        assert gateway.upload_calls == []

    @pytest.mark.asyncio
    async def test_validation_failure_ends_progress_stream(self, service, temp_dir):
        progress = UploadProgress()

        with pytest.raises(ValidationError):
            await service.create({"title": "Tour"}, temp_dir / "missing.mp4", progress=progress)

        assert [event async for event in progress] == []

    @pytest.mark.asyncio
    async def test_progress_events_delivered(self, service, video_file):
        progress = UploadProgress()

        task = asyncio.create_task(service.create({"title": "Tour"}, video_file, progress=progress))
        events = [event async for event in progress]
        await task

        assert events == [(2048, 2048)]


class TestPreload:
    """preload warms the item cache."""

    @pytest.mark.asyncio
    async def test_preload_counts_cached_ids(self, service, gateway):
        count = await service.preload(["a", "b", "missing", "a"])

        assert count == 2
        assert sorted(gateway.item_calls) == ["a", "b", "missing"]

    @pytest.mark.asyncio
    async def test_preload_ignores_offline_failures(self, service, gateway):
        gateway.offline = True

        assert await service.preload(["a", "b"]) == 0


class TestLocalSnapshot:
    """cache_locally and load_cached_locally."""

    @pytest.mark.asyncio
    async def test_round_trip_through_new_service(self, gateway, blob_store, settings, clock):
        first = ClipService(gateway, blob_store, settings, clock=clock)
        await first.cache_locally([ClipRecord(id="s1", like_count=2), ClipRecord(id="s2")])

        second = ClipService(gateway, blob_store, settings, clock=clock)
        await second.open()
        loaded = await second.load_cached_locally()

        assert [c.id for c in loaded] == ["s1", "s2"]
        assert second.peek("s1").like_count == 2

    @pytest.mark.asyncio
    async def test_load_without_snapshot_is_empty(self, service):
        assert await service.load_cached_locally() == []

    @pytest.mark.asyncio
    async def test_local_snapshot_serves_offline_listing(
        self, gateway, blob_store, settings, clock
    ):
        first = ClipService(gateway, blob_store, settings, clock=clock)
        await first.cache_locally([ClipRecord(id="s1"), ClipRecord(id="s2")])

        gateway.offline = True
        second = ClipService(gateway, blob_store, settings, clock=clock)
        clips = await second.list(page=1, page_size=5)

        assert [c.id for c in clips] == ["s1", "s2"]


class TestLifecycle:
    """open, close, clear_cache and stats."""

    @pytest.mark.asyncio
    async def test_context_manager_loads_liked_state(self, gateway, settings, clock):
        store = MemoryBlobStore({"clips:liked": '{"a": true}'})

        async with ClipService(gateway, store, settings, clock=clock) as service:
            assert service.is_liked("a") is True

    @pytest.mark.asyncio
    async def test_close_flushes_writes(self, gateway, blob_store, settings, clock):
        service = ClipService(gateway, blob_store, settings, clock=clock)
        await service.like("a")

        await service.close()

        assert blob_store.get("clips:liked") == '{"a":true}'

    @pytest.mark.asyncio
    async def test_clear_cache_and_stats(self, service):
        await service.list(page=1, page_size=3)
        await service.like("a")
        assert service.stats().items == 3

        await service.clear_cache()

        stats = service.stats()
        assert (stats.items, stats.pages, stats.liked) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_from_settings_builds_owned_resources(self, temp_dir):
        settings = Settings(storage={"backend": "sqlite", "db_path": str(temp_dir / "c.db")})

        service = ClipService.from_settings(settings)
        try:
            assert isinstance(service._gateway, HttpClipGateway)
            assert isinstance(service._store, SQLiteBlobStore)
        finally:
            await service.close()

        assert service._store.conn is None


def test_fake_gateway_satisfies_protocol():
    assert isinstance(FakeGateway(), ResourceGateway)
