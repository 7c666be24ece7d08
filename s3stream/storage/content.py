"""
Streaming Object Content
========================

A lazy, length-aware byte sequence that can be drained exactly once.

Design Principles:
------------------
1. **Zero-Copy**: Bodies flow chunk by chunk; nothing buffers a whole object
2. **Single Consumption**: An explicit consumed flag, checked before any I/O,
   so a second drain fails instead of silently returning nothing
3. **Exactly-Once Release**: The release callback (closing a reader,
   returning a connection) runs once, whichever exit path comes first

Transfer Modes:
---------------
| Constructor    | chunked | length              |
|----------------|---------|---------------------|
| from_bytes     | False   | len(data)           |
| from_reader    | True    | externally known    |
| from_file      | True    | file size           |
| from_response  | header  | Content-Length      |

Memory Model:
-------------
At most one chunk (default 64 KiB) is held at a time.
"""

from __future__ import annotations

import asyncio
import inspect
import io
import logging
from pathlib import Path
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    BinaryIO,
    Callable,
    Optional,
    Union,
)

from s3stream.core import constants as C
from s3stream.core.errors import (
    ErrorCodes,
    S3Error,
    StreamAlreadyConsumed,
)
from s3stream.core.types import Bucket, Err, Key, Ok, Result
from s3stream.storage.error_mapper import transport_failure
from s3stream.storage.transport import TRANSPORT_ERRORS, TransportResponse

logger = logging.getLogger(__name__)

ReleaseCallback = Callable[[], Awaitable[None]]


class _EmptyResponseStream(Exception):
    """Internal signal: a declared body produced no chunk."""


class _TruncatedBody(Exception):
    """Internal signal: a body ended before its declared length."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"body truncated: expected {expected} bytes, got {received}")
        self.expected = expected
        self.received = received


# Raised from a response-backed source when its body fails the length checks
BODY_ERRORS = (_EmptyResponseStream, _TruncatedBody)


class ObjectContent:
    """
    Once-drainable object body.

    Ownership moves with the instance: the client hands it to the caller
    on get, the caller hands it to the client on put. Whoever holds it
    must drain or discard it.

    Example:
        >>> content = ObjectContent.from_bytes(b"hello")
        >>> with open("out.bin", "wb") as f:
        ...     result = await content.drain(f)
        >>> await content.drain(f)  # raises StreamAlreadyConsumed
    """

    __slots__ = (
        "_source",
        "_length",
        "_chunked",
        "_on_release",
        "_on_abort",
        "_consumed",
        "_released",
        "_bucket",
        "_key",
    )

    def __init__(
        self,
        source: AsyncIterator[bytes],
        length: Optional[int],
        chunked: bool,
        on_release: Optional[ReleaseCallback] = None,
        bucket: Optional[Bucket] = None,
        key: Optional[Key] = None,
        on_abort: Optional[ReleaseCallback] = None,
    ) -> None:
        """
        Wrap a byte source.

        Args:
            source: Async iterator producing the bytes, consumed once.
            length: Total size in bytes, None when unknown.
            chunked: True when the bytes are produced from an open source
                rather than held in memory.
            on_release: Coroutine function run exactly once on release.
            on_abort: Run instead of on_release when consumption stopped
                part way and the source cannot be reused.
            bucket: Bucket the content belongs to, for error context.
            key: Key the content belongs to, for error context.
        """
        if length is not None and length < 0:
            raise ValueError(f"length must be >= 0, got {length}")
        self._source = source
        self._length = length
        self._chunked = chunked
        self._on_release = on_release
        self._on_abort = on_abort
        self._consumed = False
        self._released = False
        self._bucket = bucket
        self._key = key

    # -------------------------------------------------------------------------
    # CONSTRUCTORS
    # -------------------------------------------------------------------------

    @classmethod
    def from_bytes(
        cls,
        data: Union[bytes, bytearray, memoryview],
        chunk_size: int = C.DEFAULT_CHUNK_SIZE,
    ) -> ObjectContent:
        """Fixed-length content from an in-memory block."""
        block = bytes(data)
        return cls(
            source=_iter_block(block, chunk_size),
            length=len(block),
            chunked=False,
        )

    @classmethod
    def from_reader(
        cls,
        reader: BinaryIO,
        size: int,
        chunk_size: int = C.DEFAULT_CHUNK_SIZE,
    ) -> ObjectContent:
        """
        Chunked content from an open binary reader.

        The size is known up front so the upload can declare it without
        materializing the payload. The reader is closed on release.
        """
        async def close_reader() -> None:
            reader.close()

        return cls(
            source=_iter_reader(reader, chunk_size),
            length=size,
            chunked=True,
            on_release=close_reader,
        )

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        chunk_size: int = C.DEFAULT_CHUNK_SIZE,
    ) -> ObjectContent:
        """Chunked content read lazily from a file."""
        path = Path(path)
        size = path.stat().st_size
        return cls.from_reader(path.open("rb"), size, chunk_size)

    @classmethod
    def from_response(
        cls,
        response: TransportResponse,
        length: Optional[int],
        chunked: bool,
        chunk_size: int = C.DEFAULT_CHUNK_SIZE,
        bucket: Optional[Bucket] = None,
        key: Optional[Key] = None,
    ) -> ObjectContent:
        """
        Content backed by a response body.

        The connection stays checked out until the content is
        drained, discarded or released.
        """
        expected = None if chunked else length
        return cls(
            source=_iter_response(response, expected, chunk_size),
            length=length,
            chunked=chunked,
            on_release=response.release,
            on_abort=response.abort,
            bucket=bucket,
            key=key,
        )

    # -------------------------------------------------------------------------
    # PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def length(self) -> Optional[int]:
        return self._length

    @property
    def chunked(self) -> bool:
        return self._chunked

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def released(self) -> bool:
        return self._released

    # -------------------------------------------------------------------------
    # CONSUMPTION
    # -------------------------------------------------------------------------

    def stream(self) -> AsyncIterator[bytes]:
        """
        Claim the content and return its chunks.

        Raises:
            StreamAlreadyConsumed: If the content was claimed before.
        """
        self._claim()
        return self._source

    async def drain(self, sink: Any) -> Result[int, S3Error]:
        """
        Write every chunk into `sink` and release the source.

        `sink.write(chunk)` is awaited when it returns an awaitable, so
        both plain files and async writers work.

        Returns:
            Ok(byte_count) when the whole body reached the sink.
            Err(S3Error) on source or sink I/O failure.

        Raises:
            StreamAlreadyConsumed: On a second drain.
        """
        self._claim()
        total = 0
        clean = False
        try:
            async for chunk in self._source:
                pending = sink.write(chunk)
                if inspect.isawaitable(pending):
                    await pending
                total += len(chunk)
            clean = True
            return Ok(total)
        except _EmptyResponseStream:
            return Err(S3Error.empty_response_stream(self._bucket, self._key, self._length))
        except _TruncatedBody as e:
            return Err(S3Error.transport_failure(
                e,
                self._bucket,
                self._key,
                code=ErrorCodes.TRUNCATED_BODY,
                message=str(e),
            ))
        except TRANSPORT_ERRORS as e:
            return Err(transport_failure(self._bucket, self._key, e))
        finally:
            await self.finish(clean)

    async def read_all(self) -> Result[bytes, S3Error]:
        """Drain into memory. Only for objects known to be small."""
        buffer = io.BytesIO()
        result = await self.drain(buffer)
        return result.map(lambda _: buffer.getvalue())

    async def discard(self) -> None:
        """
        Abandon the content, leaving the connection reusable.

        Remaining bytes are read and dropped so the connection is not
        left half-read. If that fails the connection is closed instead.
        Idempotent; a no-op once the content was drained.
        """
        if self._released:
            return
        if self._consumed:
            await self.release()
            return

        self._consumed = True
        clean = False
        try:
            async for _ in self._source:
                pass
            clean = True
        except BODY_ERRORS + TRANSPORT_ERRORS as e:
            logger.debug("discard of %s/%s ended early: %r", self._bucket, self._key, e)
        finally:
            await self.finish(clean)

    async def release(self) -> None:
        """
        Run the release callback. Exactly once; later calls are no-ops.

        Released content counts as consumed.
        """
        if self._released:
            return
        self._released = True
        self._consumed = True
        await _close_source(self._source)
        if self._on_release is not None:
            await self._on_release()

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------

    def _claim(self) -> None:
        if self._consumed:
            raise StreamAlreadyConsumed(
                S3Error.stream_already_consumed(self._bucket, self._key)
            )
        self._consumed = True

    async def finish(self, clean: bool) -> None:
        """
        Release after a complete read, abort after a partial one.

        Aborting closes a response connection instead of returning it to
        the pool; sources without an abort callback are simply released.
        """
        if clean or self._on_abort is None:
            await self.release()
            return
        # A half-read connection must not go back to the pool
        if self._released:
            return
        self._released = True
        await _close_source(self._source)
        await self._on_abort()

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "fresh"
        return (
            f"ObjectContent(length={self._length}, chunked={self._chunked}, "
            f"{state})"
        )


# =============================================================================
# SOURCES
# =============================================================================

async def _iter_block(block: bytes, chunk_size: int) -> AsyncIterator[bytes]:
    view = memoryview(block)
    for offset in range(0, len(block), chunk_size):
        yield bytes(view[offset:offset + chunk_size])


async def _iter_reader(reader: BinaryIO, chunk_size: int) -> AsyncIterator[bytes]:
    # File reads run in a worker thread so the loop is never blocked
    while True:
        chunk = await asyncio.to_thread(reader.read, chunk_size)
        if not chunk:
            break
        yield chunk


async def _iter_response(
    response: TransportResponse,
    expected: Optional[int],
    chunk_size: int,
) -> AsyncIterator[bytes]:
    received = 0
    async for chunk in response.iter_body(chunk_size):
        if chunk:
            received += len(chunk)
            yield chunk
    if expected is not None and received < expected:
        if received == 0:
            raise _EmptyResponseStream()
        raise _TruncatedBody(expected, received)


async def _close_source(source: AsyncIterator[bytes]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


__all__ = ["BODY_ERRORS", "ObjectContent"]
