"""
HTTP Transport Adapter
======================

Boundary between the client and the network. A transport sends a fully
formed, already signed request and yields the status, headers and a lazy
body. The physical connection stays checked out of the pool until the
response is released.

Ownership:
----------
- The in-flight operation owns the response until it either releases it
  (error path, HEAD) or hands it to an ObjectContent (successful GET).
- `release()` returns the connection to the pool once the body has been
  read to the end; `abort()` closes it instead.

Thread Safety:
-------------
One aiohttp ClientSession per transport; safe for concurrent tasks on
one event loop. No two operations share a response.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Mapping, Optional

import aiohttp
from yarl import URL

from s3stream.core.config import S3Config
from s3stream.core.errors import ConnectionReleased
from s3stream.observability.logging import redact_headers

logger = logging.getLogger(__name__)

# Exceptions raised by the network layer; anything else is a bug
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


# =============================================================================
# REQUEST / RESPONSE
# =============================================================================

@dataclass(frozen=True, slots=True)
class HttpRequest:
    """
    A signed request ready to go on the wire.

    Attributes:
        method: HTTP method.
        url: Absolute URL whose path is already percent-encoded.
        headers: Final header set, signature included.
        body: Lazy request body, None for body-less requests.
        expect_continue: Wait for "100 Continue" before sending the body.
    """
    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[AsyncIterator[bytes]] = None
    expect_continue: bool = False


class TransportResponse(ABC):
    """Status, lower-cased headers and a lazily read body."""

    status: int
    headers: Mapping[str, str]

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    @abstractmethod
    def released(self) -> bool:
        """True once the connection went back to the pool or was closed."""

    @abstractmethod
    def iter_body(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield body chunks in order. Raises ConnectionReleased after release."""

    @abstractmethod
    async def read(self, limit: int) -> bytes:
        """Read at most `limit` bytes of the body."""

    @abstractmethod
    async def release(self) -> None:
        """Return the connection to the pool. Idempotent."""

    @abstractmethod
    async def abort(self) -> None:
        """Close the connection without reuse. Idempotent."""


class Transport(ABC):
    """Sends signed requests."""

    @abstractmethod
    async def send(self, request: HttpRequest) -> TransportResponse:
        """
        Send one request.

        Raises:
            One of TRANSPORT_ERRORS when no response could be obtained.
        """

    @abstractmethod
    async def close(self) -> None:
        """Close pooled connections."""


# =============================================================================
# AIOHTTP IMPLEMENTATION
# =============================================================================

class AiohttpResponse(TransportResponse):
    """TransportResponse backed by an aiohttp.ClientResponse."""

    __slots__ = ("status", "headers", "_response", "_released")

    def __init__(self, response: aiohttp.ClientResponse) -> None:
        self._response = response
        self.status = response.status
        # Duplicate header names collapse to the last value
        self.headers = {k.lower(): v for k, v in response.headers.items()}
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def iter_body(self, chunk_size: int) -> AsyncIterator[bytes]:
        if self._released:
            raise ConnectionReleased("response body read after release")
        async for chunk in self._response.content.iter_chunked(chunk_size):
            yield chunk

    async def read(self, limit: int) -> bytes:
        if self._released:
            raise ConnectionReleased("response body read after release")
        parts = []
        remaining = limit
        while remaining > 0:
            chunk = await self._response.content.read(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        # aiohttp returns an awaitable from release() on older versions
        pending = self._response.release()
        if inspect.isawaitable(pending):
            await pending

    async def abort(self) -> None:
        if self._released:
            return
        self._released = True
        self._response.close()


class AiohttpTransport(Transport):
    """
    Connection-pooled transport over aiohttp.

    The session is created lazily inside the running event loop.

    Example:
        >>> transport = AiohttpTransport(S3Config(region="eu-west-1"))
        >>> response = await transport.send(request)
        >>> await response.release()
        >>> await transport.close()
    """

    __slots__ = ("_config", "_session")

    def __init__(self, config: S3Config) -> None:
        self._config = config
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self._config.max_connections,
                ssl=None if self._config.verify_ssl else False,
            )
            timeout = aiohttp.ClientTimeout(
                total=None,
                connect=self._config.connect_timeout_seconds,
                sock_read=self._config.read_timeout_seconds,
            )
            # Bodies are passed through byte for byte
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                auto_decompress=False,
            )
        return self._session

    async def send(self, request: HttpRequest) -> TransportResponse:
        session = self._get_session()
        self._log_request(request)

        response = await session.request(
            request.method,
            URL(request.url, encoded=True),
            headers=dict(request.headers),
            data=request.body,
            expect100=request.expect_continue,
        )

        wrapped = AiohttpResponse(response)
        self._log_response(request, wrapped)
        return wrapped

    async def close(self) -> None:
        """
        Close pooled connections.

        Safe to call multiple times.
        """
        if self._session is not None:
            await self._session.close()
            self._session = None

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    def _log_request(self, request: HttpRequest) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        extra = {"method": request.method, "url": request.url}
        if self._config.log_headers:
            extra["headers"] = redact_headers(request.headers)
        logger.debug("request %s %s", request.method, request.url, extra=extra)

    def _log_response(self, request: HttpRequest, response: TransportResponse) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        extra = {"method": request.method, "url": request.url, "status": response.status}
        if self._config.log_headers:
            extra["headers"] = redact_headers(response.headers)
        logger.debug(
            "response %s %s -> %d",
            request.method,
            request.url,
            response.status,
            extra=extra,
        )


__all__ = [
    "TRANSPORT_ERRORS",
    "HttpRequest",
    "TransportResponse",
    "Transport",
    "AiohttpResponse",
    "AiohttpTransport",
]
