"""HTTP gateway for the backend reels API.

This module provides an aiohttp-based implementation of ResourceGateway with
concurrency control, retry with exponential backoff for idempotent requests,
and translation of every failure into a typed TransportError.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, Callable

import aiohttp
from aiohttp.payload import AsyncIterablePayload

from clipvault.config.models import APISettings
from clipvault.services.clip_models import ClipRecord, MutationKind, ResourceScope
from clipvault.services.gateway.progress import UploadProgress
from clipvault.shared.constants import APIFields, Endpoints, HTTPStatusCodes, NetworkConfig
from clipvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    TransportError,
    TransportErrorKind,
    ValidationError,
    create_validation_error,
)
from clipvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]


def _extract_list(payload: Any) -> list[Any]:
    """Find the reel list in a response that may or may not be wrapped."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in APIFields.LIST_ENVELOPE_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


class HttpClipGateway:
    """Backend reels API client.

    Args:
        settings: API settings (base URL, timeouts, retries, concurrency)
        session: Optional externally owned aiohttp session
        token_provider: Optional callable returning a bearer token
    """

    def __init__(
        self,
        settings: APISettings,
        session: aiohttp.ClientSession | None = None,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self.settings = settings
        self._session = session
        self._owns_session = session is None
        self._token_provider = token_provider
        self._semaphore = asyncio.Semaphore(settings.concurrent_requests)

        logger.info("HTTP gateway initialized for %s", settings.base_url)

    async def __aenter__(self) -> HttpClipGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the session if this gateway created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=None,
                connect=self.settings.connect_timeout,
                sock_connect=self.settings.send_timeout,
                sock_read=self.settings.read_timeout,
            )
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={
                    "Accept": NetworkConfig.ACCEPT,
                    "User-Agent": NetworkConfig.USER_AGENT,
                },
            )
            self._owns_session = True
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url}{path}"

    def _auth_headers(self) -> dict[str, str]:
        if self._token_provider is None:
            return {}
        token = self._token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def fetch_page(
        self,
        scope: ResourceScope,
        page: int,
        page_size: int,
    ) -> list[ClipRecord]:
        """Fetch one page of a listing.

        When the backend ignores the pagination parameters and returns the
        full list, the requested window is cut out in memory.
        """
        params: dict[str, Any] = {
            Endpoints.PAGE_PARAM: page,
            Endpoints.LIMIT_PARAM: page_size,
        }
        if scope.project_id is not None:
            params[APIFields.PROJECT_ID] = scope.project_id

        payload = await self._request_json(
            "GET",
            Endpoints.REELS,
            operation="fetch_page",
            params=params,
            idempotent=True,
        )

        records = [r for r in self._parse_records(_extract_list(payload)) if scope.includes(r)]
        if len(records) > page_size:
            start = (page - 1) * page_size
            records = records[start : start + page_size]
        return records

    async def fetch_by_id(self, record_id: str) -> ClipRecord:
        """Fetch a single reel."""
        payload = await self._request_json(
            "GET",
            Endpoints.REEL.format(record_id=record_id),
            operation="fetch_by_id",
            record_id=record_id,
            idempotent=True,
        )
        return self._parse_record(payload, "fetch_by_id", record_id)

    async def send_mutation(self, record_id: str, kind: MutationKind) -> None:
        """Send a like or unlike. Never retried."""
        path = Endpoints.LIKE if kind is MutationKind.LIKE else Endpoints.UNLIKE
        await self._request_json(
            "POST",
            path.format(record_id=record_id),
            operation=f"send_{kind.value}",
            record_id=record_id,
            idempotent=False,
        )

    async def upload(
        self,
        fields: dict[str, Any],
        file_path: Path,
        progress: UploadProgress | None = None,
        thumbnail_path: Path | None = None,
    ) -> ClipRecord:
        """Create a reel with a multipart upload.

        Args:
            fields: Form fields (title, description, projectId, ...)
            file_path: Video file
            progress: Optional stream receiving (bytes_sent, bytes_total)
            thumbnail_path: Optional thumbnail image

        Returns:
            The created record

        Raises:
            ValidationError: If a file does not exist
            TransportError: If the upload fails
        """
        files = [(APIFields.FILE, Path(file_path))]
        if thumbnail_path is not None:
            files.append((APIFields.THUMBNAIL, Path(thumbnail_path)))

        for field_name, path in files:
            if not path.is_file():
                raise create_validation_error(
                    f"File not found: {path}",
                    field=field_name,
                    operation="upload",
                )

        total = sum(path.stat().st_size for _, path in files)
        sent = [0]

        def _on_chunk(size: int) -> None:
            sent[0] += size
            if progress is not None:
                progress.publish(sent[0], total)

        writer = aiohttp.MultipartWriter("form-data")
        for name, value in fields.items():
            if value is None or value == "":
                continue
            part = writer.append(str(value))
            part.set_content_disposition("form-data", name=name)
        for field_name, path in files:
            part = writer.append_payload(
                AsyncIterablePayload(self._read_chunks(path, _on_chunk))
            )
            part.set_content_disposition("form-data", name=field_name, filename=path.name)

        try:
            payload = await self._request_json(
                "POST",
                Endpoints.REELS,
                operation="upload",
                data=writer,
                idempotent=False,
            )
        finally:
            if progress is not None:
                progress.finish()

        return self._parse_record(payload, "upload", None)

    @staticmethod
    async def _read_chunks(
        path: Path,
        on_chunk: Callable[[int], None],
    ) -> AsyncIterator[bytes]:
        with open(path, "rb") as f:
            while True:
                chunk = await asyncio.to_thread(f.read, NetworkConfig.UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                on_chunk(len(chunk))
                yield chunk

    def _parse_records(self, items: list[Any]) -> list[ClipRecord]:
        records: list[ClipRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                records.append(ClipRecord.from_api(item))
            except ValidationError as e:
                log_operation_error(logger=logger, error=e, level=logging.WARNING)
        return records

    def _parse_record(
        self,
        payload: Any,
        operation: str,
        record_id: str | None,
    ) -> ClipRecord:
        if not isinstance(payload, dict):
            raise TransportError(
                TransportErrorKind.SERVER,
                "Expected a reel object in the response",
                code=ErrorCode.API_INVALID_RESPONSE,
                context=ErrorContext(operation=operation, record_id=record_id),
            )
        return ClipRecord.from_api(payload)

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        data: Any = None,
        record_id: str | None = None,
        idempotent: bool,
    ) -> Any:
        """Make a concurrency-limited request, retrying idempotent calls.

        Raises:
            TransportError: If the request fails after all retries
        """
        context = ErrorContext(
            operation=operation,
            record_id=record_id,
            additional_data={"method": method, "path": path},
        )
        attempts = self.settings.retry_attempts + 1 if idempotent else 1
        start = time.perf_counter()

        for attempt in range(attempts):
            try:
                result = await self._send(method, path, params, data, context)
            except TransportError as e:
                if attempt + 1 >= attempts or not self._is_retryable(e):
                    log_operation_error(logger=logger, error=e, level=logging.WARNING)
                    raise
                backoff_delay = self.settings.retry_delay * (2**attempt)
                logger.debug(
                    "Retrying %s %s in %.2fs after %s (attempt %d/%d)",
                    method,
                    path,
                    backoff_delay,
                    e.code.value,
                    attempt + 1,
                    attempts,
                )
                await asyncio.sleep(backoff_delay)
            else:
                log_operation_success(
                    logger=logger,
                    operation=operation,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    context=context,
                )
                return result

        raise AssertionError("unreachable")  # pragma: no cover

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        data: Any,
        context: ErrorContext,
    ) -> Any:
        session = self._get_session()
        async with self._semaphore:
            try:
                async with session.request(
                    method,
                    self._url(path),
                    params=params,
                    data=data,
                    headers=self._auth_headers(),
                ) as response:
                    if not HTTPStatusCodes.is_success(response.status):
                        body = await response.text()
                        raise self._status_error(response.status, body, context)
                    try:
                        return await response.json(content_type=None)
                    except (json.JSONDecodeError, ValueError) as e:
                        raise TransportError(
                            TransportErrorKind.SERVER,
                            f"Invalid JSON in response: {e!s}",
                            status=response.status,
                            code=ErrorCode.API_INVALID_RESPONSE,
                            context=context,
                            original_error=e,
                        ) from e
            except asyncio.TimeoutError as e:
                raise TransportError(
                    TransportErrorKind.TIMEOUT,
                    f"Request timed out: {path}",
                    context=context,
                    original_error=e,
                ) from e
            except aiohttp.ClientError as e:
                raise TransportError(
                    TransportErrorKind.NETWORK,
                    f"Connection failed: {e!s}",
                    context=context,
                    original_error=e,
                ) from e

    @staticmethod
    def _status_error(status: int, body: str, context: ErrorContext) -> TransportError:
        """Convert an error status into a TransportError."""
        snippet = body[:200]
        if status == HTTPStatusCodes.NOT_FOUND:
            return TransportError(
                TransportErrorKind.NOT_FOUND,
                "Resource not found",
                status=status,
                context=context,
            )
        if HTTPStatusCodes.is_server_error(status):
            return TransportError(
                TransportErrorKind.SERVER,
                f"Server error {status}: {snippet}",
                status=status,
                context=context,
            )
        return TransportError(
            TransportErrorKind.SERVER,
            f"Request rejected with status {status}: {snippet}",
            status=status,
            code=ErrorCode.API_CLIENT_ERROR,
            context=context,
        )

    @staticmethod
    def _is_retryable(error: TransportError) -> bool:
        if error.kind in (TransportErrorKind.NETWORK, TransportErrorKind.TIMEOUT):
            return True
        return error.status is not None and HTTPStatusCodes.is_server_error(error.status)
