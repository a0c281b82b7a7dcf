"""Remote resource gateway protocol.

The cache core talks to the backend only through this interface, so tests
and alternative transports can replace the HTTP implementation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from clipvault.services.clip_models import ClipRecord, MutationKind, ResourceScope
from clipvault.services.gateway.progress import UploadProgress


@runtime_checkable
class ResourceGateway(Protocol):
    """Protocol for the backend reels API.

    Every method raises ``TransportError`` on failure.

    Example:
        >>> gateway: ResourceGateway = HttpClipGateway(settings.api)
        >>> records = await gateway.fetch_page(ResourceScope.all(), 1, 20)
    """

    async def fetch_page(
        self,
        scope: ResourceScope,
        page: int,
        page_size: int,
    ) -> list[ClipRecord]:
        """Fetch one page of a listing, in server order."""

    async def fetch_by_id(self, record_id: str) -> ClipRecord:
        """Fetch a single record."""

    async def send_mutation(self, record_id: str, kind: MutationKind) -> None:
        """Send a like/unlike. The response body is not used."""

    async def upload(
        self,
        fields: dict[str, Any],
        file_path: Path,
        progress: UploadProgress | None = None,
        thumbnail_path: Path | None = None,
    ) -> ClipRecord:
        """Create a record from form fields and a video file."""
