"""Remote resource gateway for the reels API."""

from __future__ import annotations

from .http_gateway import HttpClipGateway
from .progress import UploadProgress
from .protocol import ResourceGateway

__all__ = [
    "HttpClipGateway",
    "ResourceGateway",
    "UploadProgress",
]
