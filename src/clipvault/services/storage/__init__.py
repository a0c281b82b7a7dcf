"""Persistent blob store implementations."""

from __future__ import annotations

from clipvault.config.models import StorageSettings
from clipvault.shared.constants import StorageBackend

from .base import BlobStore, NamespacedBlobStore
from .memory_store import MemoryBlobStore
from .sqlite_store import SQLiteBlobStore


def create_blob_store(settings: StorageSettings) -> BlobStore:
    """Build the blob store selected by configuration."""
    if settings.backend == StorageBackend.MEMORY:
        return MemoryBlobStore()
    return SQLiteBlobStore(settings.db_path)


__all__ = [
    "BlobStore",
    "MemoryBlobStore",
    "NamespacedBlobStore",
    "SQLiteBlobStore",
    "create_blob_store",
]
