"""
Core module: Type definitions, error taxonomy, and configuration.

This module provides the foundational abstractions for the client:
- Result/Either monads for zero-exception control flow
- Validated Bucket/Key identifiers and the opaque ETag
- Closed error taxonomy with bucket/key context
- Configuration management with validation
"""

from s3stream.core.types import (
    Result,
    Ok,
    Err,
    Bucket,
    Key,
    ETag,
)
from s3stream.core.errors import (
    ErrorKind,
    ErrorCodes,
    S3Error,
    StreamAlreadyConsumed,
    ConnectionReleased,
)
from s3stream.core.config import S3Config

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Bucket",
    "Key",
    "ETag",
    "ErrorKind",
    "ErrorCodes",
    "S3Error",
    "StreamAlreadyConsumed",
    "ConnectionReleased",
    "S3Config",
]
