"""
Request Signing
===============

AWS Signature Version 4 for S3 requests, delegated to botocore.

The client describes the payload instead of handing over the body:
bodies are streams that can only be read once, so they are never
hashed. Uploads are signed with UNSIGNED-PAYLOAD and carry their
declared length in a signed Content-Length header.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials as BotocoreCredentials

from s3stream.core import constants as C
from s3stream.storage.credentials import Credentials


@dataclass(frozen=True, slots=True)
class PayloadDescriptor:
    """
    What the signature says about the body.

    Attributes:
        length: Declared byte length, None when unknown.
        chunked: True when the body is streamed from an open source.
        present: False for body-less requests (HEAD, GET).
    """
    length: Optional[int] = None
    chunked: bool = False
    present: bool = True

    @classmethod
    def empty(cls) -> PayloadDescriptor:
        return cls(length=0, chunked=False, present=False)

    @property
    def content_sha256(self) -> str:
        return C.UNSIGNED_PAYLOAD if self.present else C.EMPTY_SHA256


class RequestSigner(ABC):
    """Produces the signed header set for a request."""

    @abstractmethod
    def sign(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        payload: PayloadDescriptor,
        credentials: Credentials,
        region: str,
    ) -> dict[str, str]:
        """
        Return `headers` plus the authentication headers.

        `url` must already be percent-encoded; its path is signed as is.
        """


class _DescribedPayloadAuth(S3SigV4Auth):
    """S3SigV4Auth taking the payload hash from the descriptor instead of the body."""

    def payload(self, request: AWSRequest) -> str:
        return request.context["payload_sha256"]


class SigV4Signer(RequestSigner):
    """
    SigV4 signer backed by botocore.auth.

    Stateless; one instance can sign for any number of concurrent calls.
    """

    __slots__ = ("_service",)

    def __init__(self, service: str = C.SIGNING_SERVICE) -> None:
        self._service = service

    def sign(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        payload: PayloadDescriptor,
        credentials: Credentials,
        region: str,
    ) -> dict[str, str]:
        request = AWSRequest(method=method, url=url, headers=dict(headers))
        request.context["payload_sha256"] = payload.content_sha256

        auth = _DescribedPayloadAuth(
            BotocoreCredentials(
                credentials.access_key,
                credentials.secret_key,
                credentials.session_token,
            ),
            self._service,
            region,
        )
        auth.add_auth(request)
        return dict(request.headers.items())


__all__ = [
    "PayloadDescriptor",
    "RequestSigner",
    "SigV4Signer",
]
