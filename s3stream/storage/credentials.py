"""
Credentials Providers
=====================

Supply the access key, secret and optional session token current at
call time. The client asks on every request and never caches the
answer, so rotation done elsewhere (STS refresh, instance roles,
re-written profiles) is picked up by the next call.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from aiobotocore.session import AioSession, get_session
from botocore.exceptions import BotoCoreError

from s3stream.core.config import S3Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Credentials:
    """Immutable credential snapshot used to sign one request."""
    access_key: str
    secret_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)


class CredentialsUnavailableError(Exception):
    """No credentials could be resolved."""


class CredentialsProvider(ABC):
    """Resolves the credentials current at call time."""

    @abstractmethod
    async def current(self) -> Credentials:
        """
        Return the credentials to sign the next request with.

        Raises:
            CredentialsUnavailableError: If none can be resolved.
        """


class StaticCredentialsProvider(CredentialsProvider):
    """Fixed credentials, e.g. from configuration."""

    __slots__ = ("_credentials",)

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        session_token: Optional[str] = None,
    ) -> None:
        self._credentials = Credentials(access_key, secret_key, session_token)

    async def current(self) -> Credentials:
        return self._credentials


class SessionCredentialsProvider(CredentialsProvider):
    """
    AWS default credential chain through an aiobotocore session.

    Environment, shared config/credentials files, container and
    instance metadata, in the usual order. Refreshable credentials are
    frozen at each call so a refresh never happens mid-signature.
    """

    __slots__ = ("_session",)

    def __init__(
        self,
        session: Optional[AioSession] = None,
        profile_name: Optional[str] = None,
    ) -> None:
        if session is None:
            session = get_session()
            if profile_name:
                session.set_config_variable("profile", profile_name)
        self._session = session

    async def current(self) -> Credentials:
        try:
            resolved = await self._session.get_credentials()
        except BotoCoreError as e:
            raise CredentialsUnavailableError(f"credential chain failed: {e}") from e
        if resolved is None:
            raise CredentialsUnavailableError("no credentials found in the AWS default chain")

        frozen = await resolved.get_frozen_credentials()
        return Credentials(
            access_key=frozen.access_key,
            secret_key=frozen.secret_key,
            session_token=frozen.token,
        )


def default_provider(config: S3Config) -> CredentialsProvider:
    """Static credentials when configured, the AWS default chain otherwise."""
    if config.has_static_credentials:
        return StaticCredentialsProvider(
            config.access_key_id,
            config.secret_access_key,
            config.session_token,
        )
    logger.debug("no static credentials configured, using the AWS default chain")
    return SessionCredentialsProvider()


__all__ = [
    "Credentials",
    "CredentialsUnavailableError",
    "CredentialsProvider",
    "StaticCredentialsProvider",
    "SessionCredentialsProvider",
    "default_provider",
]
