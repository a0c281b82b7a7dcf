"""Settings loader and process-wide configuration cache.

This module handles:
- Configuration file loading from TOML
- Thread-safe lazy loading of the Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from clipvault.config.models.settings import Settings
from clipvault.shared.errors import ClipVaultError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("config/clipvault.toml"),
    Path("clipvault.toml"),
)


class SettingsLoader:
    """Thread-safe holder for the process-wide Settings.

    Uses double-checked locking to ensure thread-safety while
    minimizing lock overhead.
    """

    def __init__(self) -> None:
        self._instance: Settings | None = None
        self._lock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the settings instance, loading it on first use."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reset(self) -> None:
        """Forget the cached instance so the next access reloads it."""
        with self._lock:
            self._instance = None


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML configuration file or the environment.

    Args:
        config_path: Optional path to a TOML file. If None, the default
            locations are tried before falling back to the environment.

    Returns:
        Settings instance

    Raises:
        ClipVaultError: If an explicit config_path does not exist
    """
    if config_path:
        try:
            return Settings.from_toml_file(config_path)
        except FileNotFoundError as e:
            raise ClipVaultError(
                code=ErrorCode.CONFIG_MISSING,
                message=str(e),
                context=ErrorContext(
                    operation="load_settings",
                    additional_data={"config_path": str(config_path)},
                ),
                original_error=e,
            ) from e

    for default_path in DEFAULT_CONFIG_PATHS:
        if default_path.exists():
            return Settings.from_toml_file(default_path)

    return Settings()


_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the process-wide settings instance (thread-safe)."""
    return _loader.get_config()


def reset_config() -> None:
    """Drop the cached settings (used by tests)."""
    _loader.reset()
