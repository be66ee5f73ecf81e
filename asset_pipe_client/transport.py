"""HTTP transport for the asset build server.

This module handles:
- POST with raw or streamed request bodies
- GET for sync data and bundle existence checks
- Parsing JSON response bodies, falling back to raw text
- Attaching the origin-server-id header
- Mapping network failures to TransportError
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx
from starlette.concurrency import iterate_in_threadpool

from asset_pipe_client.errors import TIMEOUT_ERROR, TransportError
from asset_pipe_client.types import RequestBody

logger = logging.getLogger(__name__)

# Header carrying the identity of the server publishing assets
SERVER_ID_HEADER = "origin-server-id"

# Timeout for build server requests (seconds)
REQUEST_TIMEOUT = 30.0


@dataclass
class TransportResponse:
    """Status and body of a build server response.

    ``body`` is the parsed JSON value when the response was JSON, otherwise
    the raw text unchanged.
    """

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        """Whether the status code is 2xx."""
        return 200 <= self.status_code < 300


def parse_body(text: str) -> Any:
    """Parse a response body as JSON, returning the raw text if that fails."""
    if not text:
        return text
    try:
        return json.loads(text)
    except ValueError:
        return text


async def _iterate(body: Iterable[bytes] | AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    if isinstance(body, AsyncIterable):
        async for chunk in body:
            yield chunk
    else:
        # Advanced in a worker thread
        async for chunk in iterate_in_threadpool(iter(body)):
            yield chunk


class Transport:
    """Async HTTP adapter used by the client for every build server call.

    Streamed bodies are handed to httpx as async iterators, so chunks are
    written to the connection as they are produced.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        server_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds.
            server_id: Default value for the origin-server-id header.
            client: Existing HTTPX client to use; one is created otherwise.
        """
        self.timeout = timeout
        self.server_id = server_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, server_id: str | None, json_content: bool) -> dict[str, str]:
        headers: dict[str, str] = {"accept": "application/json"}
        if json_content:
            headers["content-type"] = "application/json"
        identity = server_id or self.server_id
        if identity:
            headers[SERVER_ID_HEADER] = identity
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        content: Any = None,
        json_content: bool = False,
        server_id: str | None = None,
    ) -> TransportResponse:
        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(
                method,
                url,
                content=content,
                headers=self._headers(server_id, json_content),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Timeout during {method} {url}", code=TIMEOUT_ERROR
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error during {method} {url}: {e}") from e

        logger.debug("%s %s -> %d", method, url, response.status_code)
        return TransportResponse(
            status_code=response.status_code, body=parse_body(response.text)
        )

    async def post(
        self,
        url: str,
        body: RequestBody | None = None,
        *,
        json_body: Any = None,
        server_id: str | None = None,
    ) -> TransportResponse:
        """POST to the build server.

        Args:
            url: Target URL.
            body: Raw bytes/str, or an (async) iterable of byte chunks that
                is streamed into the request.
            json_body: Value to send as a JSON document instead of ``body``.
            server_id: Overrides the default origin-server-id header.

        Returns:
            TransportResponse with status code and parsed body.

        Raises:
            TransportError: If the request could not be completed.
        """
        if json_body is not None:
            content: Any = json.dumps(json_body).encode("utf-8")
        elif body is None or isinstance(body, (bytes, str)):
            content = body
        else:
            content = _iterate(body)
        return await self._send(
            "POST", url, content=content, json_content=True, server_id=server_id
        )

    async def get(self, url: str, *, server_id: str | None = None) -> TransportResponse:
        """GET from the build server.

        Raises:
            TransportError: If the request could not be completed.
        """
        return await self._send("GET", url, server_id=server_id)

    async def aclose(self) -> None:
        """Close the underlying HTTPX client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = [
    "REQUEST_TIMEOUT",
    "SERVER_ID_HEADER",
    "Transport",
    "TransportResponse",
    "parse_body",
]
