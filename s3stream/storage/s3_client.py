"""
S3-Compatible Object Client
===========================

Three operations over a signed HTTP transport, for AWS S3, MinIO,
Cloudflare R2, and other S3-compatible services.

Design Principles:
------------------
1. **Zero-Copy**: Object bodies are streamed, never buffered whole
2. **Result Monad**: No exceptions for control flow; every operation
   returns Ok or Err(S3Error)
3. **Release on Every Path**: Connections go back to the pool after a
   full drain, are released before an error is returned, and are
   drained-and-released when content is abandoned
4. **No Retries**: A failure is reported once; retry policy belongs to
   the caller, who can see the store's error code

Operation Pipeline:
-------------------
    Built -> Signed -> Sent -> Succeeded | Failed

| Operation   | Method | Body    | Success value |
|-------------|--------|---------|---------------|
| head_object | HEAD   | none    | ObjectSummary |
| get_object  | GET    | stream  | S3Object      |
| put_object  | PUT    | stream  | None          |

Thread Safety:
--------------
- Credentials are resolved per call, never cached
- Only the connection pool and metrics counters are shared
- Concurrent calls are not serialized; the store's last-writer-wins
  semantics apply to concurrent puts
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from types import MappingProxyType
from typing import Any, AsyncIterator, Mapping, Optional, Union
from urllib.parse import quote, urlsplit

import aiohttp

from s3stream.core import constants as C
from s3stream.core.config import S3Config
from s3stream.core.errors import (
    ErrorCodes,
    ErrorKind,
    S3Error,
    StreamAlreadyConsumed,
)
from s3stream.core.types import Bucket, Err, ETag, Key, Ok, Result
from s3stream.observability.logging import StructuredLogger
from s3stream.storage.content import BODY_ERRORS, ObjectContent
from s3stream.storage.credentials import (
    CredentialsProvider,
    CredentialsUnavailableError,
    default_provider,
)
from s3stream.storage.error_mapper import classify, transport_failure
from s3stream.storage.signer import PayloadDescriptor, RequestSigner, SigV4Signer
from s3stream.storage.transport import (
    TRANSPORT_ERRORS,
    AiohttpTransport,
    HttpRequest,
    Transport,
    TransportResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

BucketLike = Union[Bucket, str]
KeyLike = Union[Key, str]


# =============================================================================
# OBJECT SUMMARY
# =============================================================================

@dataclass(frozen=True, slots=True)
class ObjectSummary:
    """
    Immutable description of a stored object, parsed from response headers.

    Attributes:
        key: Object key.
        etag: Opaque entity tag, quotes stripped.
        metadata: User-defined metadata (x-amz-meta-*), read-only.
        size: Object size in bytes, None if the store did not say.
        last_modified: Last modification time, None if absent or malformed.
        content_type: MIME content type, None if absent.
    """
    key: Key
    etag: ETag
    metadata: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    size: Optional[int] = None
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None

    @classmethod
    def from_headers(cls, key: Key, headers: Mapping[str, str]) -> ObjectSummary:
        """Build from lower-cased response headers; tolerant of missing fields."""
        metadata = {
            name[len(C.METADATA_PREFIX):]: value
            for name, value in headers.items()
            if name.startswith(C.METADATA_PREFIX)
        }

        size: Optional[int] = None
        raw_length = headers.get("content-length", "").strip()
        if raw_length.isdigit():
            size = int(raw_length)

        last_modified: Optional[datetime] = None
        raw_modified = headers.get("last-modified")
        if raw_modified:
            try:
                last_modified = parsedate_to_datetime(raw_modified)
            except (TypeError, ValueError):
                logger.debug("unparseable Last-Modified header: %r", raw_modified)

        return cls(
            key=key,
            etag=ETag.from_header(headers.get("etag", "")),
            metadata=MappingProxyType(metadata),
            size=size,
            last_modified=last_modified,
            content_type=headers.get("content-type"),
        )


@dataclass(frozen=True, slots=True)
class S3Object:
    """
    A fetched object: summary plus its not yet drained content.

    The content holds the connection open. Use as an async context
    manager so undrained content is discarded on exit:

        async with obj:
            await obj.content.drain(sink)
    """
    summary: ObjectSummary
    content: ObjectContent

    async def __aenter__(self) -> S3Object:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.content.discard()


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

@dataclass(slots=True)
class S3Metrics:
    """
    Nanosecond-precision counters for client operations.
    """
    head_count: int = 0
    get_count: int = 0
    put_count: int = 0

    bytes_uploaded: int = 0
    put_latency_sum_ns: int = 0

    errors: dict[str, int] = field(default_factory=dict)

    def record_upload(self, size_bytes: int, latency_ns: int) -> None:
        """Record a successful upload."""
        self.bytes_uploaded += size_bytes
        self.put_latency_sum_ns += latency_ns

    def record_error(self, error: S3Error) -> None:
        self.errors[error.kind.name] = self.errors.get(error.kind.name, 0) + 1

    def upload_throughput_mbps(self) -> float:
        """Calculate average upload throughput in MB/s."""
        if self.put_latency_sum_ns == 0:
            return 0.0
        seconds = self.put_latency_sum_ns / 1_000_000_000
        return (self.bytes_uploaded / 1_000_000) / seconds


# =============================================================================
# S3 CLIENT
# =============================================================================

class S3Client:
    """
    Minimal streaming client for an S3-compatible store.

    Example:
        >>> async with S3Client(S3Config(region="eu-west-1")) as s3:
        ...     result = await s3.get_object("ovo-comms-test", "more.pdf")
        ...     match result:
        ...         case Ok(obj):
        ...             async with obj:
        ...                 await obj.content.drain(sink)
        ...         case Err(error):
        ...             print(error.code)
    """

    __slots__ = (
        "_config",
        "_transport",
        "_signer",
        "_credentials",
        "_metrics",
        "_log",
    )

    def __init__(
        self,
        config: Optional[S3Config] = None,
        transport: Optional[Transport] = None,
        signer: Optional[RequestSigner] = None,
        credentials: Optional[CredentialsProvider] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Endpoint, region and connection settings.
            transport: HTTP transport (default: pooled aiohttp transport).
            signer: Request signer (default: SigV4 via botocore).
            credentials: Credentials provider (default: static keys from
                the config, else the AWS default chain).
        """
        self._config = config or S3Config()
        self._transport = transport or AiohttpTransport(self._config)
        self._signer = signer or SigV4Signer()
        self._credentials = credentials or default_provider(self._config)
        self._metrics = S3Metrics()
        self._log = StructuredLogger(__name__).with_extra(region=self._config.region)

    @classmethod
    def from_env(cls, prefix: str = "S3") -> S3Client:
        """Client configured from environment variables (see S3Config.from_env)."""
        return cls(S3Config.from_env(prefix))

    async def __aenter__(self) -> S3Client:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """
        Close pooled connections.

        Safe to call multiple times.
        """
        await self._transport.close()

    @property
    def config(self) -> S3Config:
        return self._config

    @property
    def metrics(self) -> S3Metrics:
        """Get current metrics snapshot."""
        return self._metrics

    # -------------------------------------------------------------------------
    # OPERATIONS
    # -------------------------------------------------------------------------

    async def head_object(
        self,
        bucket: BucketLike,
        key: KeyLike,
    ) -> Result[ObjectSummary, S3Error]:
        """
        Get object metadata without opening a body.

        Args:
            bucket: Bucket holding the object.
            key: Object key.

        Returns:
            Ok(ObjectSummary) on success.
            Err(S3Error) with NOT_FOUND_KEY, NOT_FOUND_BUCKET,
            STORE_REJECTED or TRANSPORT_FAILURE.
        """
        bucket, key = _coerce_bucket(bucket), _coerce_key(key)
        self._metrics.head_count += 1

        with self._log.object_context("head_object", bucket, key):
            sent = await self._send("HEAD", bucket, key, {}, PayloadDescriptor.empty())
            if sent.is_err():
                return self._failed(sent.error)

            response = sent.unwrap()
            try:
                if response.ok:
                    summary = ObjectSummary.from_headers(key, response.headers)
                    self._log.debug("head_object succeeded", etag=str(summary.etag))
                    return Ok(summary)
                error = classify(bucket, key, response.status, response.headers, b"")
            finally:
                await response.release()

            if (
                error.kind is ErrorKind.NOT_FOUND_KEY
                and C.HEADER_ERROR_CODE not in response.headers
                and await self._bucket_missing(bucket)
            ):
                error = S3Error.not_found_bucket(
                    bucket, key, status=error.status, request_id=error.request_id
                )
            return self._failed(error)

    async def get_object(
        self,
        bucket: BucketLike,
        key: KeyLike,
    ) -> Result[S3Object, S3Error]:
        """
        Fetch an object as a stream.

        On success the returned content owns the connection until it
        is drained or discarded; the caller must do one of the two.
        On failure the connection is released before returning.

        Returns:
            Ok(S3Object) on success.
            Err(S3Error) otherwise.
        """
        bucket, key = _coerce_bucket(bucket), _coerce_key(key)
        self._metrics.get_count += 1

        with self._log.object_context("get_object", bucket, key):
            sent = await self._send("GET", bucket, key, {}, PayloadDescriptor.empty())
            if sent.is_err():
                return self._failed(sent.error)

            response = sent.unwrap()
            if not response.ok:
                try:
                    error = await self._classify(response, bucket, key)
                finally:
                    await response.release()
                return self._failed(error)

            try:
                summary = ObjectSummary.from_headers(key, response.headers)
                chunked = "chunked" in response.headers.get("transfer-encoding", "").lower()
                content = ObjectContent.from_response(
                    response,
                    length=summary.size,
                    chunked=chunked,
                    chunk_size=self._config.chunk_size_bytes,
                    bucket=bucket,
                    key=key,
                )
            except BaseException:
                await response.abort()
                raise

            self._log.debug("get_object opened", etag=str(summary.etag), size=summary.size)
            return Ok(S3Object(summary=summary, content=content))

    async def put_object(
        self,
        bucket: BucketLike,
        key: KeyLike,
        content: ObjectContent,
        metadata: Optional[Mapping[str, str]] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> Result[None, S3Error]:
        """
        Upload an object from a stream.

        The content is consumed whatever the outcome and must not be
        reused afterwards.

        Args:
            bucket: Target bucket.
            key: Target key; an existing object is overwritten.
            content: Body to upload, drained once.
            metadata: User-defined metadata sent as x-amz-meta-* headers.
            content_type: MIME content type stored with the object.

        Returns:
            Ok(None) on success.
            Err(S3Error) otherwise.

        Raises:
            StreamAlreadyConsumed: If `content` was drained before.
            ValueError: If two metadata names differ only in case.
        """
        bucket, key = _coerce_bucket(bucket), _coerce_key(key)
        if content.consumed:
            raise StreamAlreadyConsumed(S3Error.stream_already_consumed(bucket, key))
        metadata_headers = _metadata_headers(metadata)
        self._metrics.put_count += 1

        with self._log.object_context("put_object", bucket, key):
            tally = _UploadTally()
            body = tally.wrap(content.stream())
            try:
                headers = {"Content-Type": content_type, **metadata_headers}
                # Without a length aiohttp falls back to chunked transfer-encoding
                if content.length is not None:
                    headers["Content-Length"] = str(content.length)

                payload = PayloadDescriptor(length=content.length, chunked=content.chunked)
                expect_continue = self._config.expect_continue and content.length != 0

                start_ns = time.perf_counter_ns()
                sent = await self._send(
                    "PUT", bucket, key, headers, payload,
                    body=body,
                    expect_continue=expect_continue,
                )
                if sent.is_err():
                    return self._failed(sent.error)

                response = sent.unwrap()
                try:
                    if response.ok:
                        self._metrics.record_upload(
                            tally.sent, time.perf_counter_ns() - start_ns
                        )
                        self._log.debug("put_object succeeded", size=tally.sent)
                        return Ok(None)
                    error = await self._classify(response, bucket, key)
                finally:
                    await response.release()
                return self._failed(error)
            finally:
                # A source read part way (e.g. another GET body) is aborted
                await content.finish(tally.complete)

    # -------------------------------------------------------------------------
    # REQUEST ASSEMBLY
    # -------------------------------------------------------------------------

    def object_url(self, bucket: Bucket, key: Optional[Key] = None) -> str:
        """
        Percent-encoded URL for a bucket or an object.

        Path style:    {endpoint}/{bucket}/{key}
        Virtual style: {scheme}://{bucket}.{host}/{key}
        """
        endpoint = urlsplit(self._config.resolved_endpoint)
        base_path = endpoint.path.rstrip("/")
        object_path = "/" + quote(key.value, safe="/~") if key is not None else ""

        if self._config.resolved_addressing_style == "virtual":
            return (
                f"{endpoint.scheme}://{bucket.value}.{endpoint.netloc}"
                f"{base_path}{object_path or '/'}"
            )
        return (
            f"{endpoint.scheme}://{endpoint.netloc}{base_path}"
            f"/{quote(bucket.value, safe='')}{object_path}"
        )

    async def _send(
        self,
        method: str,
        bucket: Bucket,
        key: Optional[Key],
        headers: Mapping[str, str],
        payload: PayloadDescriptor,
        body: Any = None,
        expect_continue: bool = False,
    ) -> Result[TransportResponse, S3Error]:
        """Sign with the credentials current now and send."""
        url = self.object_url(bucket, key)

        try:
            credentials = await self._credentials.current()
        except CredentialsUnavailableError as e:
            return Err(S3Error.transport_failure(
                e, bucket, key,
                code=ErrorCodes.CREDENTIALS_UNAVAILABLE,
                message=str(e),
            ))

        signed = self._signer.sign(
            method, url, headers, payload, credentials, self._config.region
        )
        request = HttpRequest(
            method=method,
            url=url,
            headers=signed,
            body=body,
            expect_continue=expect_continue,
        )

        try:
            return Ok(await self._transport.send(request))
        except TRANSPORT_ERRORS as e:
            return Err(transport_failure(bucket, key, e))

    async def _classify(
        self,
        response: TransportResponse,
        bucket: Bucket,
        key: Optional[Key],
    ) -> S3Error:
        """Read a bounded error body and classify the response."""
        try:
            body = await response.read(C.MAX_ERROR_BODY_BYTES)
        except TRANSPORT_ERRORS as e:
            logger.debug("could not read error body (status %d): %r", response.status, e)
            body = b""
        return classify(bucket, key, response.status, response.headers, body)

    async def _bucket_missing(self, bucket: Bucket) -> bool:
        """
        Ask whether a bucket exists after a body-less 404.

        Any answer other than 404 (including 403 for foreign buckets)
        counts as existing; a failed probe leaves the 404 as NoSuchKey.
        """
        sent = await self._send("HEAD", bucket, None, {}, PayloadDescriptor.empty())
        if sent.is_err():
            self._log.warning("bucket probe failed", code=sent.error.code)
            return False
        response = sent.unwrap()
        await response.release()
        return response.status == 404

    def _failed(self, error: S3Error) -> Err[S3Error]:
        self._metrics.record_error(error)
        self._log.warning(
            "operation failed",
            error_kind=error.kind.name,
            error_code=error.code,
            status=error.status,
            request_id=error.request_id,
        )
        return Err(error)


# =============================================================================
# HELPERS
# =============================================================================

class _UploadTally:
    """Counts the bytes the transport pulled from an upload body."""

    __slots__ = ("sent", "complete")

    def __init__(self) -> None:
        self.sent = 0
        self.complete = False

    async def wrap(self, source: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        try:
            async for chunk in source:
                self.sent += len(chunk)
                yield chunk
        except BODY_ERRORS as e:
            # Surfaces the way aiohttp reports a failing request body
            raise aiohttp.ClientPayloadError(str(e) or type(e).__name__) from e
        self.complete = True


def _metadata_headers(metadata: Optional[Mapping[str, str]]) -> dict[str, str]:
    """x-amz-meta-* headers; names are lower-cased as the store keeps them."""
    headers: dict[str, str] = {}
    for name, value in (metadata or {}).items():
        header = f"{C.METADATA_PREFIX}{name.lower()}"
        if header in headers:
            raise ValueError(f"metadata names collide when lower-cased: {name!r}")
        headers[header] = value
    return headers


def _coerce_bucket(bucket: BucketLike) -> Bucket:
    return bucket if isinstance(bucket, Bucket) else Bucket(bucket)


def _coerce_key(key: KeyLike) -> Key:
    return key if isinstance(key, Key) else Key(key)


__all__ = [
    "S3Client",
    "S3Object",
    "ObjectSummary",
    "S3Metrics",
    "DEFAULT_CONTENT_TYPE",
]
