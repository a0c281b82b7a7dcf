"""Storage and logging configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from clipvault.shared.constants import StorageBackend


class StorageSettings(BaseModel):
    """Persistent blob store configuration."""

    backend: str = Field(
        default=StorageBackend.SQLITE,
        description="Blob store backend (sqlite, memory)",
    )
    db_path: str = Field(
        default=StorageBackend.DEFAULT_DB_PATH,
        description="SQLite database path",
    )

    @field_validator("backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in (StorageBackend.SQLITE, StorageBackend.MEMORY):
            msg = f"Unsupported storage backend: {value}"
            raise ValueError(msg)
        return value


class LoggingSettings(BaseModel):
    """Logging configuration.

    This class manages logging behavior including level, file output,
    and console rendering.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="JSON log file path")
    rich_console: bool = Field(default=True, description="Render console logs with rich")


__all__ = [
    "LoggingSettings",
    "StorageSettings",
]
