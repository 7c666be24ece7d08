"""
System-Wide Constants for the S3 Streaming Client

All magic numbers and wire names centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

# =============================================================================
# STREAMING
# =============================================================================
DEFAULT_CHUNK_SIZE: Final[int] = 64 * KB
# Upper bound on error bodies read into memory before classification
MAX_ERROR_BODY_BYTES: Final[int] = 64 * KB

# =============================================================================
# CONNECTION DEFAULTS
# =============================================================================
DEFAULT_REGION: Final[str] = "us-east-1"
DEFAULT_MAX_CONNECTIONS: Final[int] = 10
DEFAULT_CONNECT_TIMEOUT_S: Final[int] = 5
DEFAULT_READ_TIMEOUT_S: Final[int] = 60

# =============================================================================
# WIRE NAMES
# =============================================================================
SIGNING_SERVICE: Final[str] = "s3"
METADATA_PREFIX: Final[str] = "x-amz-meta-"
HEADER_REQUEST_ID: Final[str] = "x-amz-request-id"
HEADER_ERROR_CODE: Final[str] = "x-amz-error-code"

# Payload hash markers
UNSIGNED_PAYLOAD: Final[str] = "UNSIGNED-PAYLOAD"
EMPTY_SHA256: Final[str] = (
    "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
)
