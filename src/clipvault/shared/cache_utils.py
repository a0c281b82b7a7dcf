"""Cache key utilities.

This module builds the canonical string keys used by the page cache, the
offline snapshots and the persistent blob store. Identical requests always
produce identical keys regardless of parameter order.

Example:
    >>> from clipvault.shared.cache_utils import generate_cache_key
    >>> generate_cache_key("page", "all", {"size": 20, "page": 1})
    'page:all:page=1:size=20'
"""

from __future__ import annotations

from typing import Any

from clipvault.shared.constants import StorageKeys


def canonical_params(params: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize parameters for consistent key generation.

    Normalization rules:
        1. Remove None and empty string values
        2. Convert keys to lowercase

    Values keep their case: record and project ids are case-sensitive.

    Args:
        params: Parameters dictionary. Can be None.

    Returns:
        Normalized parameters dictionary. Returns empty dict if params is None.

    Example:
        >>> canonical_params({"Page": 1, "project": None, "Scope": ""})
        {'page': 1}
    """
    if not params:
        return {}

    return {k.lower(): v for k, v in params.items() if v is not None and v != ""}


def generate_cache_key(
    object_type: str,
    object_id: str | int | None = None,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a canonical cache key.

    Cache key format:
        - With ID: "{object_type}:{object_id}:{sorted_params}"
        - Without ID: "{object_type}:{sorted_params}"

    Args:
        object_type: Key family, e.g. "page" or "snapshot". Must be non-empty.
        object_id: Optional identifier, e.g. a scope key.
        params: Optional parameters, e.g. {"page": 1, "size": 20}.

    Returns:
        Human-readable key with sorted parameters

    Raises:
        ValueError: If object_type is empty
    """
    if not object_type:
        raise ValueError("object_type cannot be empty or None")

    parts = [object_type]

    if object_id is not None:
        parts.append(str(object_id))

    normalized = canonical_params(params)
    if normalized:
        parts.append(":".join(f"{k}={v}" for k, v in sorted(normalized.items())))

    return ":".join(parts)


def storage_key(namespace: str, *parts: str) -> str:
    """Build a namespaced blob store key.

    Args:
        namespace: Resource namespace, e.g. "clips"
        *parts: Key segments appended after the namespace

    Returns:
        Key of the form "namespace:part1:part2"

    Example:
        >>> storage_key("clips", "snapshot", "all")
        'clips:snapshot:all'
    """
    if not namespace:
        raise ValueError("namespace cannot be empty")
    return StorageKeys.NAMESPACE_SEPARATOR.join([namespace, *parts])
