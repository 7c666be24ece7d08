"""
Observability module: structured logging.
"""

from s3stream.observability.logging import (
    JsonFormatter,
    StructuredLogger,
    LogLevel,
    redact_headers,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "StructuredLogger",
    "LogLevel",
    "redact_headers",
    "setup_logging",
]
