"""HTTP transport for the cloud client.

The resolvers only need two coroutines, ``get`` and ``post`` (the
``Transport`` protocol). ``HttpTransport`` implements them with aiohttp:

- ``etag`` becomes an ``If-None-Match`` header and ``wait`` a
  ``Prefer: wait=N`` header, for conditional long-poll requests
- JSON bodies are decoded and, when they are objects, tagged with the HTTP
  status as ``_statusCode``
- ``304 Not Modified`` resolves to ``{"_statusCode": 304}`` instead of
  raising, so pollers can tell "nothing changed" from a failure
- any status outside 200-399 raises ``HTTPError``
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, Self

import aiohttp

from cloudclient.config import TransportConfig
from cloudclient.error import HTTPError

logger = logging.getLogger(__name__)

STATUS_CODE_KEY = "_statusCode"


class Transport(Protocol):
    """Protocol for request transports."""

    async def get(self, url: str, *, etag: str | None = None, wait: int | None = None) -> Any:
        """GET ``url`` and return the decoded body.

        Args:
            url: The URL to fetch
            etag: Send as ``If-None-Match`` when set
            wait: Long-poll wait in seconds, sent as ``Prefer: wait=N``
        """
        ...

    async def post(self, url: str, body: Any) -> Any:
        """POST ``body`` as JSON to ``url`` and return the decoded body."""
        ...


def decode_body(text: str, content_type: str | None) -> Any:
    """Decode a response body the way the server most likely meant it.

    JSON is assumed when the content type says so or when the body looks
    like a JSON object or array.
    """
    stripped = text.lstrip()
    is_json = bool(content_type and "json" in content_type) or stripped.startswith(("{", "["))
    if not stripped:
        return {}
    if is_json:
        return json.loads(text)
    return text


class HttpTransport:
    """aiohttp implementation of ``Transport``.

    Without a session, each request opens and closes its own
    ``aiohttp.ClientSession``. A session passed in is reused and remains
    owned by the caller.

    Example:
        ```python
        async with aiohttp.ClientSession() as session:
            transport = HttpTransport(session)
            instance = await cloud_client("http://localhost:3000", transport)
        ```
    """

    __slots__ = ("_session", "_own_session", "config")

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        config: TransportConfig | None = None,
    ) -> None:
        self._session = session
        self._own_session = False
        self.config = config or TransportConfig()

    async def __aenter__(self) -> Self:
        """Open a session shared by all requests until exit."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._own_session = True
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the session if this transport opened it."""
        if self._own_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._own_session = False

    async def get(self, url: str, *, etag: str | None = None, wait: int | None = None) -> Any:
        headers: dict[str, str] = {}
        if etag:
            headers["If-None-Match"] = etag
        if wait:
            headers["Prefer"] = f"wait={wait}"
        return await self._request("GET", url, headers=headers, wait=wait)

    async def post(self, url: str, body: Any) -> Any:
        data = body if isinstance(body, str) else json.dumps(body)
        headers = {"Content-Type": "application/json"}
        return await self._request("POST", url, headers=headers, data=data)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        data: str | None = None,
        wait: int | None = None,
    ) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout + (wait or 0))
        all_headers = {**self.config.headers, **headers}
        logger.debug("%s %s", method, url)

        session = self._session
        own_session = session is None
        if own_session:
            session = aiohttp.ClientSession()
        try:
            async with session.request(
                method,
                url,
                data=data,
                headers=all_headers,
                timeout=timeout,
            ) as response:
                text = await response.text()
                return self._handle_response(response, text)
        finally:
            if own_session:
                await session.close()

    @staticmethod
    def _handle_response(response: aiohttp.ClientResponse, text: str) -> Any:
        status = response.status
        content_type = response.headers.get("Content-Type")

        if not 200 <= status < 400:
            try:
                body = decode_body(text, content_type)
            except ValueError:
                body = text
            message = text if isinstance(body, str) and text else None
            raise HTTPError.create(status, message, dict(response.headers)).with_body(body)

        body = decode_body(text, content_type)
        if isinstance(body, dict):
            body[STATUS_CODE_KEY] = status
        return body

    def __repr__(self) -> str:
        return f"HttpTransport(timeout={self.config.timeout})"
