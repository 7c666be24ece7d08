"""
Storage module: streaming S3 client and its collaborators.

Components:
- ObjectContent: once-drainable streaming body
- S3Client: head/get/put facade returning Result values
- Error mapper: responses and transport failures to S3Error
- Transport, signer and credentials seams with default implementations
"""

from s3stream.storage.content import ObjectContent
from s3stream.storage.credentials import (
    Credentials,
    CredentialsProvider,
    CredentialsUnavailableError,
    SessionCredentialsProvider,
    StaticCredentialsProvider,
    default_provider,
)
from s3stream.storage.error_mapper import classify, parse_error_body, transport_failure
from s3stream.storage.s3_client import (
    ObjectSummary,
    S3Client,
    S3Metrics,
    S3Object,
)
from s3stream.storage.signer import PayloadDescriptor, RequestSigner, SigV4Signer
from s3stream.storage.transport import (
    AiohttpTransport,
    HttpRequest,
    Transport,
    TransportResponse,
)

__all__ = [
    "ObjectContent",
    "Credentials",
    "CredentialsProvider",
    "CredentialsUnavailableError",
    "SessionCredentialsProvider",
    "StaticCredentialsProvider",
    "default_provider",
    "classify",
    "parse_error_body",
    "transport_failure",
    "ObjectSummary",
    "S3Client",
    "S3Metrics",
    "S3Object",
    "PayloadDescriptor",
    "RequestSigner",
    "SigV4Signer",
    "AiohttpTransport",
    "HttpRequest",
    "Transport",
    "TransportResponse",
]
