"""
Streaming Client for S3-Compatible Object Stores

Three operations over a SigV4-signed HTTP transport:
- head_object: object metadata, no body
- get_object: object content as a once-drainable stream
- put_object: upload from a stream, with user metadata

Every operation returns a Result (Ok | Err(S3Error)); expected failures
are values, never exceptions. Connections are released on every exit
path, including abandonment of a half-read stream.

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
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
from s3stream.storage import (
    ObjectContent,
    ObjectSummary,
    S3Client,
    S3Object,
    S3Metrics,
    Credentials,
    CredentialsProvider,
    StaticCredentialsProvider,
    SessionCredentialsProvider,
    RequestSigner,
    SigV4Signer,
    PayloadDescriptor,
    Transport,
    AiohttpTransport,
)

__all__ = [
    # Version
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Identity types
    "Bucket",
    "Key",
    "ETag",
    # Errors
    "ErrorKind",
    "ErrorCodes",
    "S3Error",
    "StreamAlreadyConsumed",
    "ConnectionReleased",
    # Config
    "S3Config",
    # Client
    "ObjectContent",
    "ObjectSummary",
    "S3Client",
    "S3Object",
    "S3Metrics",
    # Collaborators
    "Credentials",
    "CredentialsProvider",
    "StaticCredentialsProvider",
    "SessionCredentialsProvider",
    "RequestSigner",
    "SigV4Signer",
    "PayloadDescriptor",
    "Transport",
    "AiohttpTransport",
]
