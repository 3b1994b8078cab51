"""HTTP upload sink: posts a batch as multipart form data."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from ..exceptions import UploadError
from ..models import SourceFile

logger = logging.getLogger(__name__)


class HTTPUploadSink:
    """
    Upload sink backed by httpx.

    Callable with a list of SourceFile; any HTTP status >= 400 or transport
    error is raised as UploadError so the orchestrator fails the batch.

    Usage:
        async with HTTPUploadSink("https://api.example.com", "/uploads") as sink:
            orchestrator = UploadOrchestrator(store, sink)
    """

    def __init__(
        self,
        base_url: str,
        endpoint: str = "/uploads",
        field_name: str = "files",
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._endpoint = endpoint
        self._field_name = field_name
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __call__(self, files: List[SourceFile]) -> None:
        if not self._client:
            raise RuntimeError("HTTPUploadSink not initialized. Use 'async with' context.")

        payload = [
            (self._field_name, (f.name, f.data, f.mime_type))
            for f in files
        ]
        try:
            response = await self._client.post(self._endpoint, files=payload)
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise UploadError(f"Upload request failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                error_detail = response.json()
            except ValueError:
                error_detail = response.text
            if isinstance(error_detail, dict):
                error_detail = error_detail.get("message") or error_detail.get("detail") or error_detail
            raise UploadError(f"Upload failed ({response.status_code}): {error_detail}")

        logger.info("Uploaded %d file(s) to %s", len(files), self._endpoint)
