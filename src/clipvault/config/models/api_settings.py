"""API configuration models.

This module contains the configuration model for the backend reels API:
base URL, socket timeouts, retry behaviour and concurrency.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from clipvault.shared.constants import NetworkConfig


class APISettings(BaseModel):
    """Backend API configuration.

    Timeouts are in seconds. ``fetch_timeout`` bounds a whole list or item
    fetch as seen by the cache; the socket timeouts bound individual phases
    of the HTTP exchange.
    """

    base_url: str = Field(
        default=NetworkConfig.DEFAULT_BASE_URL,
        description="Backend base URL",
    )

    # Request settings
    connect_timeout: float = Field(
        default=NetworkConfig.CONNECT_TIMEOUT,
        gt=0,
        description="Connection timeout in seconds",
    )
    read_timeout: float = Field(
        default=NetworkConfig.READ_TIMEOUT,
        gt=0,
        description="Socket read timeout in seconds",
    )
    send_timeout: float = Field(
        default=NetworkConfig.SEND_TIMEOUT,
        gt=0,
        description="Socket send timeout in seconds",
    )
    fetch_timeout: float = Field(
        default=NetworkConfig.FETCH_TIMEOUT,
        gt=0,
        description="Upper bound for a list or item fetch in seconds",
    )

    # Retry settings
    retry_attempts: int = Field(
        default=NetworkConfig.RETRY_ATTEMPTS,
        ge=0,
        description="Number of retry attempts for idempotent requests",
    )
    retry_delay: float = Field(
        default=NetworkConfig.RETRY_DELAY,
        ge=0,
        description="Base delay between retries in seconds",
    )

    # Concurrency settings
    concurrent_requests: int = Field(
        default=NetworkConfig.DEFAULT_CONCURRENT_REQUESTS,
        gt=0,
        description="Maximum number of concurrent requests",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


__all__ = ["APISettings"]
