"""ClipVault - paginated, cached client for the reels backend."""

from __future__ import annotations

__version__ = "0.1.0"

from clipvault.services import ClipRecord, ClipService, MutationKind, ResourceScope

__all__ = [
    "ClipRecord",
    "ClipService",
    "MutationKind",
    "ResourceScope",
    "__version__",
]
