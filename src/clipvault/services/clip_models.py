"""Clip domain models.

This module defines the pydantic model for a clip (reel) record as used by
the cache, plus the value types that name listings and mutations.

Records are frozen: every state change produces a new instance, so a
snapshot taken before an optimistic update stays untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from clipvault.shared.constants import APIFields
from clipvault.shared.errors import create_validation_error


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _nested_id(value: Any) -> str:
    """Return the id of a populated reference or the raw reference."""
    if isinstance(value, dict):
        return _as_str(value.get(APIFields.MONGO_ID) or value.get(APIFields.ID))
    return _as_str(value)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class ClipRecord(BaseModel):
    """A single cached clip.

    Attributes:
        id: Opaque unique id
        project_id: Id of the orientation project the clip belongs to
        title: Display title
        description: Description text
        video_url: Video location
        thumbnail: Thumbnail location
        is_asset: Whether the video is bundled with the app
        developer_name: Developer display name
        developer_logo: Developer logo URL
        has_whatsapp: Whether the WhatsApp contact action is shown
        created_at: Creation time reported by the backend
        like_count: Number of likes, never negative
        is_liked: Whether the current user liked the clip
        liked_reported: Whether ``is_liked`` came from the backend

    Example:
        >>> clip = ClipRecord(id="a", like_count=5)
        >>> clip.with_like().like_count
        6
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Record id")
    project_id: str = Field("", description="Owning project id")
    title: str = Field("", description="Title")
    description: str = Field("", description="Description")
    video_url: str = Field("", description="Video URL")
    thumbnail: str = Field("", description="Thumbnail URL")
    is_asset: bool = Field(False, description="Bundled asset flag")
    developer_name: str = Field("", description="Developer name")
    developer_logo: str = Field("", description="Developer logo URL")
    has_whatsapp: bool = Field(True, description="WhatsApp action flag")
    created_at: datetime | None = Field(None, description="Creation time")
    like_count: int = Field(0, ge=0, description="Like count")
    is_liked: bool = Field(False, description="Liked by the current user")
    liked_reported: bool = Field(False, description="Liked flag came from the server")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ClipRecord:
        """Build a record from a backend reel payload.

        Args:
            data: Decoded JSON object

        Returns:
            Parsed record

        Raises:
            ValidationError: If the payload carries no id
        """
        record_id = _as_str(data.get(APIFields.MONGO_ID) or data.get(APIFields.ID))
        if not record_id:
            raise create_validation_error(
                "Reel payload has no id",
                field=APIFields.ID,
                operation="parse_record",
            )

        developer_name = _as_str(data.get(APIFields.DEVELOPER_NAME))
        developer_logo = _as_str(data.get(APIFields.DEVELOPER_LOGO))
        developer = data.get(APIFields.DEVELOPER_ID)
        if isinstance(developer, dict):
            developer_name = developer_name or _as_str(developer.get(APIFields.NAME))
            developer_logo = developer_logo or _as_str(
                developer.get(APIFields.LOGO_URL) or developer.get(APIFields.LOGO)
            )

        likes = data.get(APIFields.LIKES, data.get(APIFields.LIKE_COUNT, 0))
        try:
            like_count = max(0, int(likes or 0))
        except (TypeError, ValueError):
            like_count = 0

        liked_reported = APIFields.IS_LIKED in data

        return cls(
            id=record_id,
            project_id=_nested_id(data.get(APIFields.PROJECT_ID)),
            title=_as_str(data.get(APIFields.TITLE)),
            description=_as_str(data.get(APIFields.DESCRIPTION)),
            video_url=_as_str(data.get(APIFields.VIDEO_URL)),
            thumbnail=_as_str(data.get(APIFields.THUMBNAIL)),
            is_asset=data.get(APIFields.IS_ASSET) is True,
            developer_name=developer_name,
            developer_logo=developer_logo,
            has_whatsapp=data.get(APIFields.HAS_WHATSAPP, True) is not False,
            created_at=_parse_datetime(data.get(APIFields.CREATED_AT)),
            like_count=like_count,
            is_liked=data.get(APIFields.IS_LIKED) is True,
            liked_reported=liked_reported,
        )

    @classmethod
    def placeholder(cls, record_id: str) -> ClipRecord:
        """Zero-valued record for an id that has never been fetched."""
        return cls(id=record_id)

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> ClipRecord:
        """Rebuild a record persisted with ``to_storage``."""
        return cls.model_validate(data)

    def to_storage(self) -> dict[str, Any]:
        """JSON-compatible representation for the blob store."""
        return self.model_dump(mode="json")

    def with_like(self) -> ClipRecord:
        """Record after a Like transition."""
        return self.model_copy(update={"is_liked": True, "like_count": self.like_count + 1})

    def with_unlike(self) -> ClipRecord:
        """Record after an Unlike transition (count floors at zero)."""
        return self.model_copy(
            update={"is_liked": False, "like_count": max(0, self.like_count - 1)}
        )

    def with_liked_overlay(self, liked: bool) -> ClipRecord:
        """Overlay a locally known liked flag.

        Only ``is_liked`` changes. ``like_count`` stays as fetched, since
        the backend count already includes likes it has recorded.
        """
        if liked == self.is_liked:
            return self
        return self.model_copy(update={"is_liked": liked})


class MutationKind(str, Enum):
    """Mutations supported on a record's mutable state."""

    LIKE = "like"
    UNLIKE = "unlike"

    @property
    def liked(self) -> bool:
        """Liked flag after the mutation."""
        return self is MutationKind.LIKE

    def apply(self, record: ClipRecord) -> ClipRecord:
        """Return the record after this mutation."""
        if self is MutationKind.LIKE:
            return record.with_like()
        return record.with_unlike()


@dataclass(frozen=True)
class ResourceScope:
    """Names one listing of records.

    Example:
        >>> ResourceScope.all().key
        'all'
        >>> ResourceScope.project("p1").key
        'project:p1'
    """

    name: str
    project_id: str | None = None

    ALL = "all"
    PROJECT = "project"

    @classmethod
    def all(cls) -> ResourceScope:
        """Scope listing every clip."""
        return cls(cls.ALL)

    @classmethod
    def project(cls, project_id: str) -> ResourceScope:
        """Scope listing the clips of one project."""
        if not project_id:
            raise create_validation_error(
                "project_id is required for a project scope",
                field="project_id",
                operation="create_scope",
            )
        return cls(cls.PROJECT, project_id)

    @property
    def key(self) -> str:
        """Stable string form used in cache and storage keys."""
        if self.project_id is None:
            return self.name
        return f"{self.name}:{self.project_id}"

    def includes(self, record: ClipRecord) -> bool:
        """Whether the record belongs to this listing."""
        if self.project_id is None:
            return True
        return record.project_id == self.project_id

    @classmethod
    def affected_by(cls, record: ClipRecord) -> list[ResourceScope]:
        """Scopes whose membership changes when ``record`` is created."""
        scopes = [cls.all()]
        if record.project_id:
            scopes.append(cls.project(record.project_id))
        return scopes
