"""HTTP transport handler: streams a file body to an endpoint with httpx."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..models import UploadCancelled
from ..protocols import CancelCallback, HandlerFactory, ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536


class HTTPTransportHandler:
    """
    One streamed upload of a single file.

    Implements ITransportHandler protocol. cancel() aborts the in-flight
    request; start() then raises UploadCancelled.
    """

    def __init__(
        self,
        url: str,
        on_progress: ProgressCallback,
        on_cancel: CancelCallback,
        client: Optional[httpx.AsyncClient] = None,
        method: str = "POST",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 60,
    ):
        self._url = url
        self._on_progress = on_progress
        self._on_cancel = on_cancel
        self._client = client
        self._method = method.upper()
        self._chunk_size = chunk_size
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    async def start(self, source: Any) -> Any:
        if self._cancel_requested:
            raise UploadCancelled(f"Upload of {source.name} cancelled before start")

        self._task = asyncio.ensure_future(self._send(source))
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._cancel_requested:
                raise UploadCancelled(f"Upload of {source.name} cancelled") from None
            raise

    def cancel(self) -> None:
        if self._cancel_requested:
            return
        self._cancel_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._on_cancel()

    async def _body(self, source: Any) -> AsyncIterator[bytes]:
        total = source.size
        sent = 0
        self._on_progress(0, total)
        async for chunk in source.read_chunks(self._chunk_size):
            sent += len(chunk)
            yield chunk
            self._on_progress(sent, total)

    async def _send(self, source: Any) -> Any:
        headers = {
            "Content-Type": source.content_type or "application/octet-stream",
            "Content-Length": str(source.size),
            "X-File-Name": source.name,
            **self._headers,
        }

        if self._client is not None:
            return await self._request(self._client, source, headers)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._request(client, source, headers)

    async def _request(self, client: httpx.AsyncClient, source: Any, headers: Dict[str, str]) -> Any:
        logger.debug(f"{self._method} {self._url}: {source.name} ({source.size} bytes)")
        response = await client.request(
            self._method,
            self._url,
            content=self._body(source),
            headers=headers,
        )

        if response.status_code >= 400:
            try:
                error_detail = response.json()
            except Exception:
                error_detail = response.text
            raise RuntimeError(
                f"Upload error {response.status_code} on {self._method} {self._url}: {error_detail}"
            )

        try:
            return response.json()
        except ValueError:
            return response.text


def http_handler_factory(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    method: str = "POST",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 60,
) -> HandlerFactory:
    """Build a handler factory that uploads every file to ``url``."""

    def factory(on_progress: ProgressCallback, on_cancel: CancelCallback) -> HTTPTransportHandler:
        return HTTPTransportHandler(
            url,
            on_progress,
            on_cancel,
            client=client,
            method=method,
            chunk_size=chunk_size,
            headers=headers,
            timeout=timeout,
        )

    return factory
