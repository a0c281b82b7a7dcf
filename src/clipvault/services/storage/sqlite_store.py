"""SQLite blob store.

This module provides a durable BlobStore backed by a single SQLite table
in WAL mode. Values are opaque strings; callers decide the encoding.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from clipvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    create_storage_error,
)
from clipvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SQLiteBlobStore:
    """SQLite-backed BlobStore.

    One connection is shared across threads and guarded by a lock, so
    writes to the same key never interleave (last writer wins).

    Attributes:
        db_path: Path to SQLite database file
        conn: SQLite database connection

    Example:
        >>> store = SQLiteBlobStore(Path("cache/clipvault.db"))
        >>> store.set("clips:liked", '["a"]')
        True
        >>> store.get("clips:liked")
        '["a"]'
        >>> store.close()
    """

    def __init__(self, db_path: Path | str) -> None:
        """Open (and create if needed) the database.

        Args:
            db_path: Path to SQLite database file

        Raises:
            InfrastructureError: If database initialization fails
        """
        self.db_path = Path(db_path)
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._initialize_db()

    def _initialize_db(self) -> None:
        context = ErrorContext(
            operation="initialize_blob_store",
            additional_data={"db_path": str(self.db_path)},
        )

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # autocommit
            )
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")
            self.conn.execute(_SCHEMA)

            log_operation_success(
                logger=logger,
                operation="initialize_blob_store",
                duration_ms=0,
                context=context,
            )

        except (sqlite3.Error, OSError) as e:
            error = InfrastructureError(
                code=ErrorCode.STORAGE_INITIALIZATION_FAILED,
                message=f"Failed to initialize SQLite blob store: {e!s}",
                context=context,
                original_error=e,
            )
            log_operation_error(logger=logger, error=error)
            raise error from e

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise InfrastructureError(
                code=ErrorCode.STORAGE_READ_FAILED,
                message="Blob store is closed",
                context=ErrorContext(
                    operation="blob_store_access",
                    additional_data={"db_path": str(self.db_path)},
                ),
            )
        return self.conn

    def get(self, key: str) -> str | None:
        """Return the value stored under ``key``.

        Read failures are logged and reported as a missing value.
        """
        try:
            with self._lock:
                row = self._connection().execute(
                    "SELECT value FROM blobs WHERE key = ?",
                    (key,),
                ).fetchone()
        except (sqlite3.Error, InfrastructureError) as e:
            log_operation_error(
                logger=logger,
                error=create_storage_error(
                    f"Failed to read blob: {e!s}", key, "blob_get", e, write=False
                ),
                level=logging.WARNING,
            )
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key``; failures are logged, never raised."""
        updated_at = datetime.now(timezone.utc).isoformat()
        try:
            with self._lock:
                self._connection().execute(
                    "INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = excluded.updated_at",
                    (key, value, updated_at),
                )
        except (sqlite3.Error, InfrastructureError) as e:
            log_operation_error(
                logger=logger,
                error=create_storage_error(f"Failed to write blob: {e!s}", key, "blob_set", e),
                level=logging.WARNING,
            )
            return False
        return True

    def remove(self, key: str) -> None:
        """Delete ``key``; failures are logged."""
        try:
            with self._lock:
                self._connection().execute("DELETE FROM blobs WHERE key = ?", (key,))
        except (sqlite3.Error, InfrastructureError) as e:
            log_operation_error(
                logger=logger,
                error=create_storage_error(f"Failed to remove blob: {e!s}", key, "blob_remove", e),
                level=logging.WARNING,
            )

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.debug("Closed SQLite blob store: %s", self.db_path)
