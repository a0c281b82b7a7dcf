"""
Network Configuration Constants

This module contains constants for the backend HTTP client: base URL,
timeouts, retry behaviour and HTTP status codes.
"""

from .cache import BASE_SECOND


class NetworkConfig:
    """HTTP client defaults."""

    DEFAULT_BASE_URL = "http://localhost:3000"

    # Socket timeouts
    CONNECT_TIMEOUT = 15 * BASE_SECOND
    READ_TIMEOUT = 20 * BASE_SECOND
    SEND_TIMEOUT = 15 * BASE_SECOND

    # Upper bound for a whole list/item fetch as seen by the cache
    FETCH_TIMEOUT = 30 * BASE_SECOND

    # Retry settings (idempotent requests only)
    RETRY_ATTEMPTS = 2
    RETRY_DELAY = 0.5 * BASE_SECOND

    DEFAULT_CONCURRENT_REQUESTS = 6

    # Upload chunking
    UPLOAD_CHUNK_SIZE = 64 * 1024

    USER_AGENT = "ClipVault/0.1.0"
    ACCEPT = "application/json, text/html, */*"


class HTTPStatusCodes:
    """HTTP status code constants."""

    NOT_FOUND = 404

    @staticmethod
    def is_success(code: int) -> bool:
        """Check if status code indicates success (2xx)."""
        return 200 <= code < 300

    @staticmethod
    def is_server_error(code: int) -> bool:
        """Check if status code indicates server error (5xx)."""
        return 500 <= code < 600
