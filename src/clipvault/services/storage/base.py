"""Persistent blob store protocol.

The cache persists liked-state and offline snapshots as string blobs.
Anything with ``get``/``set``/``remove`` over string keys can back it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from clipvault.shared.cache_utils import storage_key


@runtime_checkable
class BlobStore(Protocol):
    """Durable string key-value store.

    Implementations must never raise from ``set``: a failed write is logged
    and reported by returning False.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value or None."""

    def set(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key``; return whether it was written."""

    def remove(self, key: str) -> None:
        """Delete ``key`` if present."""


class NamespacedBlobStore:
    """View of a shared BlobStore restricted to one key namespace.

    Several resource types may share one store; each one sees only keys of
    the form ``<namespace>:<key>``.

    Example:
        >>> store = NamespacedBlobStore(MemoryBlobStore(), "clips")
        >>> store.set("liked", "[]")
        True
        >>> store.backing.get("clips:liked")
        '[]'
    """

    def __init__(self, backing: BlobStore, namespace: str) -> None:
        self.backing = backing
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return storage_key(self.namespace, key)

    def get(self, key: str) -> str | None:
        return self.backing.get(self._key(key))

    def set(self, key: str, value: str) -> bool:
        return self.backing.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.backing.remove(self._key(key))
