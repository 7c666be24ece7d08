"""
Error Mapper
============

Classifies a non-success response, or a transport failure that never
produced one, into an S3Error carrying the targeted bucket and key.

Code resolution order for a response:
1. `<Code>` of the XML error body
2. `x-amz-error-code` header (sent by some S3-compatible stores)
3. A code derived from the HTTP status

HEAD responses carry no body, so a 404 on HEAD is ambiguous between a
missing key and a missing bucket; the client resolves that by asking
about the bucket (see S3Client.head_object).
"""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Mapping, Optional

from s3stream.core import constants as C
from s3stream.core.errors import ErrorCodes, S3Error
from s3stream.core.types import Bucket, Key

logger = logging.getLogger(__name__)


_STATUS_CODES = {
    301: "PermanentRedirect",
    307: "TemporaryRedirect",
    400: "BadRequest",
    403: "AccessDenied",
    405: "MethodNotAllowed",
    409: "Conflict",
    411: "MissingContentLength",
    412: "PreconditionFailed",
    416: "InvalidRange",
    500: "InternalError",
    501: "NotImplemented",
    503: "SlowDown",
}


@dataclass(frozen=True, slots=True)
class ErrorBody:
    """Fields of an S3 `<Error>` document; any may be missing."""
    code: Optional[str] = None
    message: Optional[str] = None
    request_id: Optional[str] = None
    bucket_name: Optional[str] = None
    key: Optional[str] = None


def parse_error_body(body: bytes) -> ErrorBody:
    """
    Parse an S3 XML error document.

    Unparseable or empty bodies give an empty ErrorBody rather than
    an exception, since the status still classifies the failure.
    """
    if not body or not body.strip():
        return ErrorBody()
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        logger.debug("error body is not XML: %r", body[:200])
        return ErrorBody()

    def _text(tag: str) -> Optional[str]:
        # Some stores namespace the document
        for element in root.iter():
            if element.tag == tag or element.tag.endswith("}" + tag):
                text = (element.text or "").strip()
                return text or None
        return None

    return ErrorBody(
        code=_text("Code"),
        message=_text("Message"),
        request_id=_text("RequestId"),
        bucket_name=_text("BucketName"),
        key=_text("Key"),
    )


def status_code(status: int, key: Optional[Key]) -> str:
    """Symbolic code for a response that carried none."""
    if status == 404:
        return ErrorCodes.NO_SUCH_KEY if key is not None else ErrorCodes.NO_SUCH_BUCKET
    return _STATUS_CODES.get(status, f"HttpError{status}")


def classify(
    bucket: Bucket,
    key: Optional[Key],
    status: int,
    headers: Mapping[str, str],
    body: bytes,
) -> S3Error:
    """
    Map a non-2xx response to an S3Error.

    Args:
        bucket: Bucket the operation targeted, always attached.
        key: Key the operation targeted, None for bucket-scoped calls.
        status: HTTP status code.
        headers: Response headers with lower-cased names.
        body: Error body, possibly empty or truncated.

    Returns:
        S3Error of kind NOT_FOUND_KEY, NOT_FOUND_BUCKET or STORE_REJECTED.
    """
    parsed = parse_error_body(body)
    code = parsed.code or headers.get(C.HEADER_ERROR_CODE) or status_code(status, key)
    request_id = parsed.request_id or headers.get(C.HEADER_REQUEST_ID)
    message = parsed.message or ""

    if code == ErrorCodes.NO_SUCH_BUCKET:
        return S3Error.not_found_bucket(
            bucket, key, message=message, status=status, request_id=request_id
        )
    if code == ErrorCodes.NO_SUCH_KEY and key is not None:
        return S3Error.not_found_key(
            bucket, key, message=message, status=status, request_id=request_id
        )
    return S3Error.store_rejected(
        code,
        bucket,
        key,
        message=message,
        status=status,
        request_id=request_id,
    )


def transport_failure(
    bucket: Optional[Bucket],
    key: Optional[Key],
    cause: BaseException,
) -> S3Error:
    """Wrap a network-level exception that never produced a response."""
    code = (
        ErrorCodes.TIMEOUT
        if isinstance(cause, asyncio.TimeoutError)
        else ErrorCodes.TRANSPORT_FAILURE
    )
    return S3Error.transport_failure(cause, bucket, key, code=code)


__all__ = [
    "ErrorBody",
    "parse_error_body",
    "status_code",
    "classify",
    "transport_failure",
]
