"""HTTP adapter for the Cloudinary upload and delivery endpoints."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..exceptions import TransformError, UploadError
from ..models import RunConfig, SourceFile

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


def _vendor_error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
    return None


class CloudinaryClient:
    """
    HTTP client adapter for the remote image service.

    Implements IUploadClient and IFetcher protocols.
    """

    def __init__(
        self,
        timeout: float = 120,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep or asyncio.sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("CloudinaryClient not initialized. Use 'async with' context.")
        return self._client

    async def upload(self, source: SourceFile, config: RunConfig) -> str:
        """
        Upload one file with the unsigned preset.

        Returns:
            The ``public_id`` of the uploaded asset.

        Raises:
            UploadError: on a non-success response or a transport failure.
        """
        client = self._require_client()
        content = await asyncio.to_thread(source.read_bytes)
        data: Dict[str, str] = {"upload_preset": config.upload_preset, "tags": config.tags}
        files = {"file": (source.name, content, source.mime_type)}

        try:
            response = await client.post(config.upload_url, data=data, files=files)
        except httpx.HTTPError as exc:
            raise UploadError(str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            message = _vendor_error_message(response) or f"Upload HTTP {response.status_code}"
            raise UploadError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UploadError("Upload response is not valid JSON", response.status_code) from exc

        public_id = payload.get("public_id") if isinstance(payload, dict) else None
        if not public_id:
            raise UploadError("Upload response has no public_id", response.status_code)
        return str(public_id)

    async def fetch(self, url: str, max_attempts: int = 3, backoff: float = 2.0) -> bytes:
        """
        GET ``url`` with bounded retries.

        Waits ``backoff * attempt`` seconds between attempts (2s, 4s, ... by
        default). Every non-success status is retried the same way; the last
        attempt's error is raised unchanged.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        client = self._require_client()

        for attempt in range(1, max_attempts + 1):
            try:
                response = await client.get(url)
                if not response.is_success:
                    raise TransformError(f"HTTP {response.status_code}", status_code=response.status_code)
                return response.content
            except (TransformError, httpx.HTTPError) as exc:
                if attempt == max_attempts:
                    raise
                delay = backoff * attempt
                logger.warning(
                    f"Fetch attempt {attempt}/{max_attempts} failed for {url}: {exc}; retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        raise RuntimeError(f"Failed to GET {url} after {max_attempts} attempts")
