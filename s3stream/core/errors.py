"""
Closed Error Taxonomy for the S3 Streaming Client

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Enforce exhaustive pattern matching for all error variants
- Never swallow errors or use null for absence
- Carry bucket/key context on every error

Expected failures (missing key or bucket, store rejection, network
failure) are S3Error values returned inside Err. Caller bugs (draining
a stream twice, using a released connection) raise immediately.

Usage:
    result = await s3.get_object(bucket, key)
    match result:
        case Ok(obj):
            ...
        case Err(S3Error(kind=ErrorKind.NOT_FOUND_KEY, key=missing)):
            ...
        case Err(error) if error.retryable:
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional

from s3stream.core.types import Bucket, Key


# =============================================================================
# ERROR KIND ENUMERATION
# =============================================================================
class ErrorKind(Enum):
    """
    Closed set of failure categories.

    The store-defined symbolic code (e.g. "NoSuchKey") lives on the
    error itself; the kind is what callers branch on.
    """

    NOT_FOUND_KEY = auto()
    NOT_FOUND_BUCKET = auto()
    STORE_REJECTED = auto()
    TRANSPORT_FAILURE = auto()
    STREAM_ALREADY_CONSUMED = auto()
    EMPTY_RESPONSE_STREAM = auto()


# Symbolic codes produced locally rather than by the store
class ErrorCodes:
    NO_SUCH_KEY = "NoSuchKey"
    NO_SUCH_BUCKET = "NoSuchBucket"
    TRANSPORT_FAILURE = "TransportFailure"
    TIMEOUT = "Timeout"
    TRUNCATED_BODY = "TruncatedBody"
    CREDENTIALS_UNAVAILABLE = "CredentialsUnavailable"
    STREAM_ALREADY_CONSUMED = "StreamAlreadyConsumed"
    EMPTY_RESPONSE_STREAM = "EmptyResponseStream"


# Store codes that usually clear up on their own
_RETRYABLE_CODES = frozenset({
    "SlowDown",
    "ServiceUnavailable",
    "InternalError",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    ErrorCodes.TIMEOUT,
    ErrorCodes.TRANSPORT_FAILURE,
    ErrorCodes.TRUNCATED_BODY,
})


# =============================================================================
# S3 ERROR VALUE
# =============================================================================
@dataclass(frozen=True, slots=True)
class S3Error:
    """
    Structured, immutable description of a failed operation.

    Attributes:
        kind: Failure category for exhaustive matching.
        code: Store-defined symbolic code ("NoSuchKey", "AccessDenied", ...)
            or a local code for transport failures.
        message: Human-readable message for logging.
        bucket_name: Bucket targeted by the operation, if known.
        key: Key targeted by the operation, if key-scoped.
        status: HTTP status of the response, None when none was received.
        request_id: Store request id, useful when contacting support.
        cause: Underlying exception for transport failures.
    """

    kind: ErrorKind
    code: str
    message: str = ""
    bucket_name: Optional[Bucket] = None
    key: Optional[Key] = None
    status: Optional[int] = None
    request_id: Optional[str] = None
    cause: Optional[BaseException] = None

    @classmethod
    def not_found_key(
        cls,
        bucket: Bucket,
        key: Key,
        message: str = "",
        status: Optional[int] = 404,
        request_id: Optional[str] = None,
    ) -> S3Error:
        """Object does not exist in an existing bucket."""
        return cls(
            kind=ErrorKind.NOT_FOUND_KEY,
            code=ErrorCodes.NO_SUCH_KEY,
            message=message or f"The key '{key}' does not exist in bucket '{bucket}'",
            bucket_name=bucket,
            key=key,
            status=status,
            request_id=request_id,
        )

    @classmethod
    def not_found_bucket(
        cls,
        bucket: Bucket,
        key: Optional[Key] = None,
        message: str = "",
        status: Optional[int] = 404,
        request_id: Optional[str] = None,
    ) -> S3Error:
        """Targeted bucket does not exist."""
        return cls(
            kind=ErrorKind.NOT_FOUND_BUCKET,
            code=ErrorCodes.NO_SUCH_BUCKET,
            message=message or f"The bucket '{bucket}' does not exist",
            bucket_name=bucket,
            key=key,
            status=status,
            request_id=request_id,
        )

    @classmethod
    def store_rejected(
        cls,
        code: str,
        bucket: Optional[Bucket],
        key: Optional[Key] = None,
        message: str = "",
        status: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> S3Error:
        """Any other store-reported error code."""
        return cls(
            kind=ErrorKind.STORE_REJECTED,
            code=code,
            message=message or f"Store rejected the request with {code}",
            bucket_name=bucket,
            key=key,
            status=status,
            request_id=request_id,
        )

    @classmethod
    def transport_failure(
        cls,
        cause: Optional[BaseException],
        bucket: Optional[Bucket] = None,
        key: Optional[Key] = None,
        code: str = ErrorCodes.TRANSPORT_FAILURE,
        message: str = "",
    ) -> S3Error:
        """Connection, timeout or body I/O failure with no parsed response."""
        return cls(
            kind=ErrorKind.TRANSPORT_FAILURE,
            code=code,
            message=message or f"Transport failure: {cause!r}",
            bucket_name=bucket,
            key=key,
            cause=cause,
        )

    @classmethod
    def stream_already_consumed(
        cls,
        bucket: Optional[Bucket] = None,
        key: Optional[Key] = None,
    ) -> S3Error:
        """Content stream drained a second time."""
        return cls(
            kind=ErrorKind.STREAM_ALREADY_CONSUMED,
            code=ErrorCodes.STREAM_ALREADY_CONSUMED,
            message="Stream already consumed",
            bucket_name=bucket,
            key=key,
        )

    @classmethod
    def empty_response_stream(
        cls,
        bucket: Optional[Bucket] = None,
        key: Optional[Key] = None,
        expected_bytes: Optional[int] = None,
    ) -> S3Error:
        """Response declared content but produced no chunk at all."""
        return cls(
            kind=ErrorKind.EMPTY_RESPONSE_STREAM,
            code=ErrorCodes.EMPTY_RESPONSE_STREAM,
            message=f"Response stream was empty, expected {expected_bytes} bytes",
            bucket_name=bucket,
            key=key,
        )

    @property
    def retryable(self) -> bool:
        """
        Hint for callers layering their own retry policy.

        Nothing in this package retries.
        """
        if self.code in _RETRYABLE_CODES:
            return True
        return self.status is not None and self.status >= 500

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for logging/CLI output."""
        return {
            "kind": self.kind.name,
            "code": self.code,
            "message": self.message,
            "bucket": str(self.bucket_name) if self.bucket_name else None,
            "key": str(self.key) if self.key else None,
            "status": self.status,
            "request_id": self.request_id,
        }

    def __str__(self) -> str:
        target = f"{self.bucket_name}/{self.key}" if self.key else str(self.bucket_name)
        return f"[{self.code}] {self.message} ({target})"


# =============================================================================
# PROGRAMMING-CONTRACT VIOLATIONS
# =============================================================================
class StreamAlreadyConsumed(RuntimeError):
    """
    Raised when an ObjectContent is drained more than once.

    Carries the S3Error describing it so callers logging the
    failure see the same shape as every other error.
    """

    def __init__(self, error: S3Error) -> None:
        super().__init__(str(error))
        self.error = error


class ConnectionReleased(RuntimeError):
    """Raised when a response body is read after its connection was released."""


__all__ = [
    "ErrorKind",
    "ErrorCodes",
    "S3Error",
    "StreamAlreadyConsumed",
    "ConnectionReleased",
]
