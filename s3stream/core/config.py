"""
Client Configuration
====================

Type-safe, immutable configuration for the S3 streaming client.

Design Principles:
------------------
1. **Immutability**: Frozen dataclass, safe to share between tasks
2. **Validation**: Pre-conditions checked at construction time
3. **Defaults**: Sensible defaults for AWS; explicit endpoint for MinIO/R2
4. **Environment**: Supports loading from environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from s3stream.core import constants as C


ADDRESSING_STYLES = ("path", "virtual")


@dataclass(frozen=True, slots=True)
class S3Config:
    """
    S3-compatible store connection configuration.

    Fixed at client construction; the client holds no other
    cross-call state.

    Attributes:
        region: Signing region (e.g. "eu-west-1").
        endpoint_url: Custom endpoint for MinIO/R2 (None for AWS).
        addressing_style: "path" or "virtual". None picks "virtual"
            for AWS and "path" for a custom endpoint.
        access_key_id: Static access key (None uses the AWS default chain).
        secret_access_key: Static secret key.
        session_token: Temporary session token for STS.
        max_connections: Connection pool size.
        connect_timeout_seconds: TCP connect timeout.
        read_timeout_seconds: Socket read timeout between chunks.
        chunk_size_bytes: Size of body chunks read from responses.
        expect_continue: Send "Expect: 100-continue" on uploads so the
            store can reject a request before the body is sent.
        verify_ssl: Verify TLS certificates (disable for self-signed).
        log_headers: Log request/response headers at DEBUG.
    """

    region: str = C.DEFAULT_REGION
    endpoint_url: Optional[str] = None
    addressing_style: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None

    max_connections: int = C.DEFAULT_MAX_CONNECTIONS
    connect_timeout_seconds: int = C.DEFAULT_CONNECT_TIMEOUT_S
    read_timeout_seconds: int = C.DEFAULT_READ_TIMEOUT_S
    chunk_size_bytes: int = C.DEFAULT_CHUNK_SIZE

    expect_continue: bool = True
    verify_ssl: bool = True
    log_headers: bool = False

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not self.region:
            raise ValueError("region must be non-empty")

        if self.endpoint_url is not None:
            parts = urlsplit(self.endpoint_url)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ValueError(
                    f"endpoint_url must be an absolute http(s) URL, got {self.endpoint_url!r}"
                )

        if (
            self.addressing_style is not None
            and self.addressing_style not in ADDRESSING_STYLES
        ):
            raise ValueError(
                f"addressing_style must be one of {ADDRESSING_STYLES}, "
                f"got {self.addressing_style!r}"
            )

        # Keys come in pairs
        if bool(self.access_key_id) != bool(self.secret_access_key):
            raise ValueError(
                "access_key_id and secret_access_key must be set together"
            )

        if self.max_connections <= 0:
            raise ValueError(f"max_connections must be > 0, got {self.max_connections}")
        if self.connect_timeout_seconds <= 0:
            raise ValueError("connect_timeout_seconds must be > 0")
        if self.read_timeout_seconds <= 0:
            raise ValueError("read_timeout_seconds must be > 0")
        if self.chunk_size_bytes <= 0:
            raise ValueError(f"chunk_size_bytes must be > 0, got {self.chunk_size_bytes}")

    @property
    def resolved_endpoint(self) -> str:
        """Endpoint URL without trailing slash."""
        if self.endpoint_url:
            return self.endpoint_url.rstrip("/")
        return f"https://s3.{self.region}.amazonaws.com"

    @property
    def resolved_addressing_style(self) -> str:
        if self.addressing_style:
            return self.addressing_style
        return "path" if self.endpoint_url else "virtual"

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    @classmethod
    def from_env(cls, prefix: str = "S3") -> "S3Config":
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_REGION: Signing region (fallback AWS_REGION, default us-east-1)
        - {prefix}_ENDPOINT_URL: Custom endpoint URL
        - {prefix}_ADDRESSING_STYLE: path|virtual
        - {prefix}_ACCESS_KEY_ID: Access key ID (fallback AWS_ACCESS_KEY_ID)
        - {prefix}_SECRET_ACCESS_KEY: Secret key (fallback AWS_SECRET_ACCESS_KEY)
        - AWS_SESSION_TOKEN: STS session token
        - {prefix}_MAX_CONNECTIONS: Pool size (default: 10)
        - {prefix}_CONNECT_TIMEOUT / {prefix}_READ_TIMEOUT: seconds
        - {prefix}_CHUNK_SIZE: Response chunk size in bytes
        - {prefix}_EXPECT_CONTINUE: Use 100-continue on uploads (default: true)
        - {prefix}_VERIFY_SSL: Verify certs (default: true)
        - {prefix}_LOG_HEADERS: Log headers at DEBUG (default: false)

        Args:
            prefix: Environment variable prefix.

        Returns:
            S3Config populated from environment.

        Raises:
            ValueError: If a value fails validation.
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)

        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default

        def _get_bool(key: str, default: bool) -> bool:
            val = _get(key).lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        return cls(
            region=_get("REGION") or os.environ.get("AWS_REGION") or C.DEFAULT_REGION,
            endpoint_url=_get("ENDPOINT_URL") or None,
            addressing_style=_get("ADDRESSING_STYLE").lower() or None,
            access_key_id=_get("ACCESS_KEY_ID") or os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get("SECRET_ACCESS_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY"),
            session_token=os.environ.get("AWS_SESSION_TOKEN"),
            max_connections=_get_int("MAX_CONNECTIONS", C.DEFAULT_MAX_CONNECTIONS),
            connect_timeout_seconds=_get_int("CONNECT_TIMEOUT", C.DEFAULT_CONNECT_TIMEOUT_S),
            read_timeout_seconds=_get_int("READ_TIMEOUT", C.DEFAULT_READ_TIMEOUT_S),
            chunk_size_bytes=_get_int("CHUNK_SIZE", C.DEFAULT_CHUNK_SIZE),
            expect_continue=_get_bool("EXPECT_CONTINUE", True),
            verify_ssl=_get_bool("VERIFY_SSL", True),
            log_headers=_get_bool("LOG_HEADERS", False),
        )


__all__ = ["S3Config", "ADDRESSING_STYLES"]
