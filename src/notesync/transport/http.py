"""HTTP transport: one network attempt per call, failures normalized.

Uses httpx.AsyncClient against the notes API. Every request carries the
``X-Platform`` header. Any failure leaves this module as a
``TransportError`` wrapping a ``RequestFailure``, so nothing downstream
ever inspects httpx exception types.
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from notesync.core.config import TransportConfig
from notesync.core.errors import normalize_failure
from notesync.core.logging import get_logger
from notesync.exceptions import TransportError
from notesync.transport.platform import PLATFORM_HEADER, detect_platform, resolve_api_base

_logger = get_logger("transport.http")


class HttpTransport:
    """Issues single HTTP attempts against the notes API.

    Args:
        config: Base URL, timeout and platform settings.
        http_transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
            used when the client is created.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or TransportConfig()
        self.base_url = resolve_api_base(self.config)
        self.platform = self.config.platform or detect_platform()
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            PLATFORM_HEADER: self.platform,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client lazily, inside the running loop."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                headers=self.headers,
                transport=self._http_transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Perform exactly one attempt and return the decoded JSON body.

        Raises:
            TransportError: on connection failure, timeout, or non-2xx status.
        """
        start = time.monotonic()
        _logger.debug("http_request", method=method, path=path)
        try:
            client = await self._get_client()
            response = await client.request(method, path, json=json, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            failure = normalize_failure(exc)
            _logger.debug(
                "http_request_failed",
                method=method,
                path=path,
                failure=type(failure).__name__,
                duration_seconds=round(time.monotonic() - start, 3),
            )
            raise TransportError(failure) from exc

        _logger.debug(
            "http_response",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_seconds=round(time.monotonic() - start, 3),
        )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, *, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, *, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
