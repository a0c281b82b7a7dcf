"""ClipVault Configuration Module

Unified access to configuration models and settings management.
"""

from __future__ import annotations

from .loader import (
    get_config,
    load_settings,
    reset_config,
)
from .models import (
    APISettings,
    CacheSettings,
    LoggingSettings,
    Settings,
    StorageSettings,
)

__all__ = [
    "APISettings",
    "CacheSettings",
    "LoggingSettings",
    "Settings",
    "StorageSettings",
    "get_config",
    "load_settings",
    "reset_config",
]
