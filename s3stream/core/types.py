"""
Core Type Definitions for the S3 Streaming Client

Result values returned by every client operation, plus the validated
identifiers used to address objects in a store.

Design Principles:
- Never use null for absence (use Optional or Result)
- Enforce exhaustive pattern matching for all variants
- Validate identifiers once, at construction

"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    TypeVar,
    Union,
)

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome of an operation."""

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failed outcome of an operation.

    For client operations the error is always an S3Error.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """Raises RuntimeError: reaching for the value of a failure is a bug."""
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Match on Ok(value) / Err(error)
Result = Union[Ok[T], Err[E]]


# =============================================================================
# OBJECT ADDRESSING TYPES WITH VALIDATION
# =============================================================================

# S3 limits object keys to 1024 bytes of UTF-8
MAX_KEY_BYTES = 1024


@dataclass(frozen=True, slots=True, order=True)
class Bucket:
    """
    Name of a storage container.

    Invariant: non-empty and free of path separators, so it can be
    placed either in the URL path or in the host name.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("bucket name must be a non-empty string")
        if "/" in self.value:
            raise ValueError(f"bucket name must not contain '/': {self.value!r}")

    @classmethod
    def parse(cls, s: str) -> Result[Bucket, str]:
        """
        Validate an untrusted bucket name.

        Returns:
            Ok[Bucket]: Valid bucket
            Err[str]: Validation error message
        """
        try:
            return Ok(cls(s))
        except ValueError as e:
            return Err(f"Invalid bucket: {e}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True, order=True)
class Key:
    """
    Identifier of an object within a bucket.

    Invariant: non-empty, at most MAX_KEY_BYTES once UTF-8 encoded.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("object key must be a non-empty string")
        size = len(self.value.encode("utf-8"))
        if size > MAX_KEY_BYTES:
            raise ValueError(
                f"object key must be at most {MAX_KEY_BYTES} bytes, got {size}"
            )

    @classmethod
    def parse(cls, s: str) -> Result[Key, str]:
        """Validate an untrusted object key."""
        try:
            return Ok(cls(s))
        except ValueError as e:
            return Err(f"Invalid key: {e}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ETag:
    """
    Opaque content-integrity token returned by the store.

    Stored without the surrounding quotes used on the wire.
    Never interpreted (multipart ETags are not MD5 digests).
    """

    value: str

    @classmethod
    def from_header(cls, header: str) -> ETag:
        """Build from a raw ETag header value, stripping quotes."""
        return cls(value=header.strip().strip('"'))

    def __str__(self) -> str:
        return self.value


__all__ = [
    "Result",
    "Ok",
    "Err",
    "Bucket",
    "Key",
    "ETag",
    "MAX_KEY_BYTES",
]
