"""
Pytest configuration and shared fixtures for ClipVault tests.

This module provides a scripted in-memory gateway, a controllable clock and
cache fixtures used across the test suite.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from clipvault.config import CacheSettings, Settings
from clipvault.services.cache import CacheCore
from clipvault.services.clip_models import ClipRecord, MutationKind, ResourceScope
from clipvault.services.gateway import UploadProgress
from clipvault.services.storage import MemoryBlobStore
from clipvault.shared.errors import TransportError, TransportErrorKind


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """Scripted ResourceGateway.

    Records are served from ``records`` in insertion order. Setting
    ``offline`` makes every call fail with a network error; ``fail_mutations``
    fails only like/unlike, and ``fail_next_mutations`` fails that many
    upcoming ones. ``mutation_gate`` holds mutations until set.
    """

    def __init__(self, records: list[ClipRecord] | None = None) -> None:
        self.records: dict[str, ClipRecord] = {r.id: r for r in records or []}
        self.offline = False
        self.fail_mutations = False
        self.fail_next_mutations = 0
        self.mutation_gate: asyncio.Event | None = None
        self.mutation_started = asyncio.Event()
        self.page_delay = 0.0
        self.upload_result: ClipRecord | None = None

        self.page_calls: list[tuple[str, int, int]] = []
        self.item_calls: list[str] = []
        self.mutation_calls: list[tuple[str, MutationKind]] = []
        self.upload_calls: list[dict[str, Any]] = []

    def _check_online(self) -> None:
        if self.offline:
            raise TransportError(TransportErrorKind.NETWORK, "gateway offline")

    async def fetch_page(
        self,
        scope: ResourceScope,
        page: int,
        page_size: int,
    ) -> list[ClipRecord]:
        self.page_calls.append((scope.key, page, page_size))
        if self.page_delay:
            await asyncio.sleep(self.page_delay)
        self._check_online()
        matching = [r for r in self.records.values() if scope.includes(r)]
        start = (page - 1) * page_size
        return matching[start : start + page_size]

    async def fetch_by_id(self, record_id: str) -> ClipRecord:
        self.item_calls.append(record_id)
        self._check_online()
        if record_id not in self.records:
            raise TransportError(TransportErrorKind.NOT_FOUND, f"{record_id} not found", status=404)
        return self.records[record_id]

    async def send_mutation(self, record_id: str, kind: MutationKind) -> None:
        self.mutation_calls.append((record_id, kind))
        self.mutation_started.set()
        if self.mutation_gate is not None:
            await self.mutation_gate.wait()
        self._check_online()
        if self.fail_next_mutations:
            self.fail_next_mutations -= 1
            raise TransportError(TransportErrorKind.SERVER, "mutation rejected", status=503)
        if self.fail_mutations:
            raise TransportError(TransportErrorKind.SERVER, "mutation rejected", status=500)

    async def upload(
        self,
        fields: dict[str, Any],
        file_path: Path,
        progress: UploadProgress | None = None,
        thumbnail_path: Path | None = None,
    ) -> ClipRecord:
        self.upload_calls.append({"fields": fields, "file_path": file_path})
        try:
            self._check_online()
            size = file_path.stat().st_size
            if progress is not None:
                progress.publish(size, size)
            record = self.upload_result or ClipRecord(
                id=f"new-{len(self.upload_calls)}",
                title=str(fields.get("title", "")),
                project_id=str(fields.get("projectId", "")),
            )
            self.records[record.id] = record
            return record
        finally:
            if progress is not None:
                progress.finish()


def make_records(count: int, prefix: str = "c", **fields: Any) -> list[ClipRecord]:
    """Build ``count`` records with ids ``<prefix>0..``."""
    return [ClipRecord(id=f"{prefix}{i}", **fields) for i in range(count)]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to the temporary directory.
    """
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(
        [
            ClipRecord(id="a", like_count=0, project_id="p1"),
            ClipRecord(id="b", like_count=0, project_id="p1"),
            ClipRecord(id="c", like_count=5, project_id="p2"),
        ]
    )


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings()


@pytest.fixture
def settings(cache_settings: CacheSettings) -> Settings:
    return Settings(cache=cache_settings)


@pytest.fixture
def cache_core(
    gateway: FakeGateway,
    blob_store: MemoryBlobStore,
    cache_settings: CacheSettings,
    clock: FakeClock,
) -> CacheCore:
    return CacheCore(gateway, blob_store, cache_settings, fetch_timeout=1.0, clock=clock)
