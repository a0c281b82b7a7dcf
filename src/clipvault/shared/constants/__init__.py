"""
ClipVault Constants Module

Centralized constants for the ClipVault package. All magic values and
configuration defaults are defined here.
"""

from .api_fields import APIFields, Endpoints
from .cache import BASE_MINUTE, BASE_SECOND, CacheConfig, StorageBackend, StorageKeys
from .network import HTTPStatusCodes, NetworkConfig

__all__ = [
    "BASE_MINUTE",
    "BASE_SECOND",
    "APIFields",
    "CacheConfig",
    "Endpoints",
    "HTTPStatusCodes",
    "NetworkConfig",
    "StorageBackend",
    "StorageKeys",
]
