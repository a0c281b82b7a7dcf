"""
Cache Configuration Constants

This module provides centralized constants for the clip cache: expiry,
capacity bounds, and persistent storage key names.
"""

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND


class CacheConfig:
    """Cache defaults for paginated resources."""

    # Entries are valid while now - cached_at < EXPIRY
    EXPIRY = 5 * BASE_MINUTE

    # Capacity bounds
    MAX_ITEMS = 1000
    MAX_PAGES = 200
    SNAPSHOT_MAX_RECORDS = 500

    # Pagination defaults
    DEFAULT_PAGE = 1
    DEFAULT_PAGE_SIZE = 20


class StorageKeys:
    """Blob store key layout.

    Keys are namespaced per resource type: ``<namespace>:<suffix>``.
    """

    NAMESPACE_SEPARATOR = ":"
    DEFAULT_NAMESPACE = "clips"
    LIKED = "liked"
    SNAPSHOT_PREFIX = "snapshot"
    SNAPSHOT_INDEX = "snapshot_index"


class StorageBackend:
    """Supported blob store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"
    DEFAULT_DB_PATH = "cache/clipvault.db"
