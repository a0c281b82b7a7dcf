"""ClipVault services.

Exports the clip service facade and the domain types it works with.
"""

from __future__ import annotations

from .clip_models import ClipRecord, MutationKind, ResourceScope
from .clip_service import ClipService

__all__ = [
    "ClipRecord",
    "ClipService",
    "MutationKind",
    "ResourceScope",
]
