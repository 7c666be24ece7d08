"""
Shared fixtures: an in-memory S3 emulation behind the Transport seam.

The fake store speaks just enough of the S3 wire protocol (path-style
URLs, x-amz-meta-* headers, XML error bodies, body-less HEAD errors)
to drive the client end to end without a network.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import AsyncIterator, Dict, List, Optional
from urllib.parse import unquote, urlsplit

import pytest

from s3stream.core.config import S3Config
from s3stream.core.errors import ConnectionReleased
from s3stream.storage.credentials import StaticCredentialsProvider
from s3stream.storage.s3_client import S3Client
from s3stream.storage.signer import SigV4Signer
from s3stream.storage.transport import HttpRequest, Transport, TransportResponse

ENDPOINT = "http://s3.test"
EXISTING_BUCKET = "ovo-comms-test"
MISSING_BUCKET = "ovo-comms-non-existing-bucket"
SEEDED_KEY = "more.pdf"
SEEDED_ETAG = "9fe029056e0841dde3c1b8a169635f6f"
SEEDED_BODY = b"%PDF-1.4 seeded test object" * 100


# =============================================================================
# FAKE RESPONSE
# =============================================================================
class FakeResponse(TransportResponse):
    """Scripted response that records how it was released."""

    def __init__(
        self,
        status: int,
        headers: Optional[Dict[str, str]] = None,
        chunks: Optional[List[bytes]] = None,
        fail_after: Optional[int] = None,
    ) -> None:
        self.status = status
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self._chunks = list(chunks or [])
        self._fail_after = fail_after
        self._released = False
        self.release_calls = 0
        self.abort_calls = 0
        self.bytes_read = 0

    @property
    def released(self) -> bool:
        return self._released

    async def iter_body(self, chunk_size: int) -> AsyncIterator[bytes]:
        if self._released:
            raise ConnectionReleased("response body read after release")
        for index, chunk in enumerate(self._chunks):
            if self._fail_after is not None and index >= self._fail_after:
                raise ConnectionResetError("connection reset by peer")
            self.bytes_read += len(chunk)
            yield chunk

    async def read(self, limit: int) -> bytes:
        data = b"".join(self._chunks)[:limit]
        self.bytes_read += len(data)
        return data

    async def release(self) -> None:
        self.release_calls += 1
        self._released = True

    async def abort(self) -> None:
        self.abort_calls += 1
        self._released = True


def error_xml(code: str, message: str = "", **fields: str) -> bytes:
    extra = "".join(f"<{name}>{value}</{name}>" for name, value in fields.items())
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Error><Code>{code}</Code><Message>{message}</Message>{extra}"
        "<RequestId>4442587FB7D0A2F9</RequestId></Error>"
    ).encode()


# =============================================================================
# IN-MEMORY STORE
# =============================================================================
@dataclass
class StoredObject:
    body: bytes
    metadata: Dict[str, str]
    etag: str
    content_type: str = "application/octet-stream"
    last_modified: str = field(default_factory=lambda: formatdate(usegmt=True))


class FakeS3Transport(Transport):
    """
    Path-style S3 emulation.

    Records every request and every response it hands out so tests
    can check signing and release discipline.
    """

    def __init__(self, chunk_size: int = 1024) -> None:
        self.buckets: Dict[str, Dict[str, StoredObject]] = {}
        self.requests: List[HttpRequest] = []
        self.responses: List[FakeResponse] = []
        self.uploaded: List[bytes] = []
        self.fail_with: Optional[BaseException] = None
        self.closed = False
        self._chunk_size = chunk_size

    def seed(self, bucket: str, key: str, body: bytes, metadata: Dict[str, str], etag: str) -> None:
        self.buckets.setdefault(bucket, {})[key] = StoredObject(body, dict(metadata), etag)

    async def send(self, request: HttpRequest) -> TransportResponse:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with

        body = b""
        if request.body is not None:
            parts = []
            async for chunk in request.body:
                parts.append(chunk)
            body = b"".join(parts)
            self.uploaded.append(body)

        response = self._handle(request, body)
        self.responses.append(response)
        return response

    async def close(self) -> None:
        self.closed = True

    def _handle(self, request: HttpRequest, body: bytes) -> FakeResponse:
        headers = {k.lower(): v for k, v in request.headers.items()}
        if not headers.get("authorization", "").startswith("AWS4-HMAC-SHA256 "):
            return FakeResponse(403, chunks=[error_xml("AccessDenied", "unsigned")])

        path = urlsplit(request.url).path.lstrip("/")
        bucket_name, _, raw_key = path.partition("/")
        key = unquote(raw_key)
        bucket = self.buckets.get(bucket_name)

        if request.method == "HEAD":
            if bucket is None or (key and key not in bucket):
                return FakeResponse(404)
            if not key:
                return FakeResponse(200)
            return FakeResponse(200, self._object_headers(bucket[key]))

        if bucket is None:
            return FakeResponse(
                404,
                {"content-type": "application/xml"},
                [error_xml("NoSuchBucket", "The specified bucket does not exist", BucketName=bucket_name)],
            )

        if request.method == "GET":
            stored = bucket.get(key)
            if stored is None:
                return FakeResponse(
                    404,
                    {"content-type": "application/xml"},
                    [error_xml("NoSuchKey", "The specified key does not exist.", Key=key)],
                )
            chunks = [
                stored.body[i:i + self._chunk_size]
                for i in range(0, len(stored.body), self._chunk_size)
            ]
            return FakeResponse(200, self._object_headers(stored), chunks)

        if request.method == "PUT":
            declared = headers.get("content-length")
            if declared is not None and int(declared) != len(body):
                return FakeResponse(400, chunks=[error_xml("IncompleteBody")])
            metadata = {
                name[len("x-amz-meta-"):]: value
                for name, value in headers.items()
                if name.startswith("x-amz-meta-")
            }
            etag = hashlib.md5(body).hexdigest()
            bucket[key] = StoredObject(
                body, metadata, etag, headers.get("content-type", "application/octet-stream")
            )
            return FakeResponse(200, {"etag": f'"{etag}"'})

        return FakeResponse(405, chunks=[error_xml("MethodNotAllowed")])

    @staticmethod
    def _object_headers(stored: StoredObject) -> Dict[str, str]:
        headers = {
            "etag": f'"{stored.etag}"',
            "content-length": str(len(stored.body)),
            "content-type": stored.content_type,
            "last-modified": stored.last_modified,
        }
        for name, value in stored.metadata.items():
            headers[f"x-amz-meta-{name}"] = value
        return headers


# =============================================================================
# FIXTURES
# =============================================================================
@pytest.fixture
def config() -> S3Config:
    return S3Config(
        region="eu-west-1",
        endpoint_url=ENDPOINT,
        access_key_id="AKIDEXAMPLE",
        secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        chunk_size_bytes=1024,
    )


@pytest.fixture
def transport() -> FakeS3Transport:
    fake = FakeS3Transport()
    fake.seed(EXISTING_BUCKET, SEEDED_KEY, SEEDED_BODY, {"is-test": "true"}, SEEDED_ETAG)
    return fake


@pytest.fixture
def s3(config: S3Config, transport: FakeS3Transport) -> S3Client:
    return S3Client(
        config,
        transport=transport,
        signer=SigV4Signer(),
        credentials=StaticCredentialsProvider(
            config.access_key_id, config.secret_access_key
        ),
    )
