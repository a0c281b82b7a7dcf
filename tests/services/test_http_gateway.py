"""Tests for the aiohttp reels gateway against an in-process server."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from clipvault.config import APISettings
from clipvault.services.clip_models import MutationKind, ResourceScope
from clipvault.services.gateway import HttpClipGateway, ResourceGateway, UploadProgress
from clipvault.shared.errors import (
    ErrorCode,
    TransportError,
    TransportErrorKind,
    ValidationError,
)

REELS = [
    {"_id": "a", "projectId": {"_id": "p1"}, "title": "A", "likes": 1},
    {"_id": "b", "projectId": "p1", "title": "B", "likes": 2, "isLiked": True},
    {"_id": "c", "projectId": "p2", "title": "C"},
    {"title": "no id"},
]


class BackendState:
    """Mutable knobs and request log for the fake backend."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict[str, str]]] = []
        self.headers: list[dict[str, str]] = []
        self.list_failures = 0
        self.list_status = 503
        self.list_payload: Any = {"success": True, "reels": REELS}
        self.mutation_status = 200
        self.raw_body: str | None = None
        self.delay = 0.0
        self.uploaded: dict[str, Any] = {}


def _build_app(state: BackendState) -> web.Application:
    async def list_reels(request: web.Request) -> web.StreamResponse:
        state.requests.append(("GET", request.path, dict(request.query)))
        state.headers.append(dict(request.headers))
        if state.delay:
            await asyncio.sleep(state.delay)
        if state.list_failures:
            state.list_failures -= 1
            return web.Response(status=state.list_status, text="unavailable")
        if state.raw_body is not None:
            return web.Response(text=state.raw_body, content_type="application/json")
        return web.json_response(state.list_payload)

    async def get_reel(request: web.Request) -> web.StreamResponse:
        record_id = request.match_info["record_id"]
        state.requests.append(("GET", request.path, dict(request.query)))
        for reel in REELS:
            if reel.get("_id") == record_id:
                return web.json_response(reel)
        return web.json_response({"message": "Reel not found"}, status=404)

    async def mutate(request: web.Request) -> web.StreamResponse:
        state.requests.append(("POST", request.path, {}))
        return web.json_response({"success": True}, status=state.mutation_status)

    async def create_reel(request: web.Request) -> web.StreamResponse:
        form = await request.post()
        for name, value in form.items():
            if isinstance(value, web.FileField):
                state.uploaded[name] = (value.filename, value.file.read())
            else:
                state.uploaded[name] = value
        return web.json_response(
            {"_id": "new", "title": form["title"], "projectId": form.get("projectId", "")},
            status=201,
        )

    app = web.Application()
    app.router.add_get("/reels", list_reels)
    app.router.add_post("/reels", create_reel)
    app.router.add_get("/reels/{record_id}", get_reel)
    app.router.add_post("/reels/{record_id}/like", mutate)
    app.router.add_post("/reels/{record_id}/unlike", mutate)
    return app


@pytest.fixture
def backend() -> BackendState:
    return BackendState()


@pytest_asyncio.fixture
async def server(backend: BackendState):
    test_server = TestServer(_build_app(backend))
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest_asyncio.fixture
async def gateway(server: TestServer):
    settings = APISettings(
        base_url=str(server.make_url("/")),
        retry_attempts=2,
        retry_delay=0,
    )
    client = HttpClipGateway(settings, token_provider=lambda: "secret")
    yield client
    await client.close()


class TestFetchPage:
    """Listing requests."""

    @pytest.mark.asyncio
    async def test_parses_envelope_and_skips_invalid(self, gateway, backend):
        records = await gateway.fetch_page(ResourceScope.all(), 1, 20)

        assert [r.id for r in records] == ["a", "b", "c"]
        assert records[0].project_id == "p1"
        assert records[1].liked_reported is True
        assert backend.requests[0][2] == {"page": "1", "limit": "20"}

    @pytest.mark.asyncio
    async def test_bare_list_payload(self, gateway, backend):
        backend.list_payload = REELS[:2]

        records = await gateway.fetch_page(ResourceScope.all(), 1, 20)

        assert [r.id for r in records] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_project_scope_sends_and_filters(self, gateway, backend):
        records = await gateway.fetch_page(ResourceScope.project("p1"), 1, 20)

        assert [r.id for r in records] == ["a", "b"]
        assert backend.requests[0][2]["projectId"] == "p1"

    @pytest.mark.asyncio
    async def test_unpaginated_backend_is_sliced(self, gateway):
        records = await gateway.fetch_page(ResourceScope.all(), 2, 2)

        assert [r.id for r in records] == ["c"]

    @pytest.mark.asyncio
    async def test_bearer_token_and_headers(self, gateway, backend):
        await gateway.fetch_page(ResourceScope.all(), 1, 20)

        headers = backend.headers[0]
        assert headers["Authorization"] == "Bearer secret"
        assert headers["User-Agent"].startswith("ClipVault/")


class TestErrors:
    """Failure translation and retry."""

    @pytest.mark.asyncio
    async def test_server_error_retried_then_succeeds(self, gateway, backend):
        backend.list_failures = 2

        records = await gateway.fetch_page(ResourceScope.all(), 1, 20)

        assert len(records) == 3
        assert len(backend.requests) == 3

    @pytest.mark.asyncio
    async def test_server_error_after_retries(self, gateway, backend):
        backend.list_failures = 10

        with pytest.raises(TransportError) as exc_info:
            await gateway.fetch_page(ResourceScope.all(), 1, 20)

        assert exc_info.value.kind is TransportErrorKind.SERVER
        assert exc_info.value.status == 503
        assert len(backend.requests) == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, gateway, backend):
        backend.list_failures = 1
        backend.list_status = 400

        with pytest.raises(TransportError) as exc_info:
            await gateway.fetch_page(ResourceScope.all(), 1, 20)

        assert exc_info.value.code is ErrorCode.API_CLIENT_ERROR
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_not_found(self, gateway):
        with pytest.raises(TransportError) as exc_info:
            await gateway.fetch_by_id("missing")

        assert exc_info.value.is_not_found

    @pytest.mark.asyncio
    async def test_invalid_json(self, gateway, backend):
        backend.raw_body = "<html>oops</html>"

        with pytest.raises(TransportError) as exc_info:
            await gateway.fetch_page(ResourceScope.all(), 1, 20)

        assert exc_info.value.code is ErrorCode.API_INVALID_RESPONSE

    @pytest.mark.asyncio
    async def test_connection_refused_is_network_error(self, unused_tcp_port):
        settings = APISettings(
            base_url=f"http://127.0.0.1:{unused_tcp_port}",
            retry_attempts=0,
        )
        async with HttpClipGateway(settings) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_by_id("a")

        assert exc_info.value.kind is TransportErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_read_timeout(self, server, backend):
        backend.delay = 0.5
        settings = APISettings(
            base_url=str(server.make_url("/")),
            read_timeout=0.05,
            retry_attempts=0,
        )
        async with HttpClipGateway(settings) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.fetch_page(ResourceScope.all(), 1, 20)

        assert exc_info.value.kind is TransportErrorKind.TIMEOUT


class TestMutations:
    """Like and unlike requests."""

    @pytest.mark.asyncio
    async def test_like_and_unlike_paths(self, gateway, backend):
        await gateway.send_mutation("a", MutationKind.LIKE)
        await gateway.send_mutation("a", MutationKind.UNLIKE)

        assert [r[1] for r in backend.requests] == ["/reels/a/like", "/reels/a/unlike"]

    @pytest.mark.asyncio
    async def test_failed_mutation_not_retried(self, gateway, backend):
        backend.mutation_status = 500

        with pytest.raises(TransportError):
            await gateway.send_mutation("a", MutationKind.LIKE)

        assert len(backend.requests) == 1


class TestUpload:
    """Multipart creation with progress."""

    @pytest.fixture
    def video(self, temp_dir: Path) -> Path:
        path = temp_dir / "tour.mp4"
        path.write_bytes(b"v" * 150_000)
        return path

    @pytest.mark.asyncio
    async def test_upload_reports_progress(self, gateway, backend, video):
        # Given
        progress = UploadProgress()
        events: list[tuple[int, int]] = []

        async def consume() -> None:
            async for event in progress:
                events.append(event)

        consumer = asyncio.create_task(consume())

        # When
        record = await gateway.upload(
            {"title": "Tour", "projectId": "p1", "description": ""},
            video,
            progress=progress,
        )
        await consumer

        # Then
        assert record.id == "new"
        assert record.project_id == "p1"
        assert backend.uploaded["title"] == "Tour"
        assert "description" not in backend.uploaded
        assert backend.uploaded["file"] == ("tour.mp4", b"v" * 150_000)
        assert events[-1] == (150_000, 150_000)
        assert [sent for sent, _ in events] == sorted(sent for sent, _ in events)
        assert progress.finished

    @pytest.mark.asyncio
    async def test_upload_with_thumbnail(self, gateway, backend, video, temp_dir):
        thumb = temp_dir / "thumb.jpg"
        thumb.write_bytes(b"j" * 10)
        progress = UploadProgress()

        await gateway.upload({"title": "Tour"}, video, progress=progress, thumbnail_path=thumb)

        assert backend.uploaded["thumbnail"] == ("thumb.jpg", b"j" * 10)
        assert progress.latest == (150_010, 150_010)

    @pytest.mark.asyncio
    async def test_missing_file_rejected(self, gateway, temp_dir):
        with pytest.raises(ValidationError):
            await gateway.upload({"title": "x"}, temp_dir / "missing.mp4")


def test_http_gateway_satisfies_protocol():
    assert isinstance(HttpClipGateway(APISettings()), ResourceGateway)
