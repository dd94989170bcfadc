"""
Shared plumbing for the OAuth-gated cloud drive providers.

Every backend call goes through ``_call``: the attempt snapshots the stored
token, checks it, and runs one network call; an ``AuthExpired`` triggers a
single deduplicated refresh through the credential store and one retry.
"""
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from polyfs.file_access.base import FileSystem, Provider, Trash
from polyfs.file_access.credentials import CredentialStore, OAuthToken
from polyfs.file_access.errors import AuthRequired
from polyfs.file_access.retry import with_auth_retry
from polyfs.integrations.oauth import AuthorizationCodeReceiver, OAuth2Client
from polyfs.monitoring.logger import log

T = TypeVar("T")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse the RFC 3339 timestamps both drive APIs return (``...Z``)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class CloudDriveProvider(Provider, FileSystem, Trash):
    """Base for cloud drives: owns the credential store and the OAuth2 client."""

    def __init__(
        self,
        oauth_client: OAuth2Client,
        token: Optional[OAuthToken] = None,
        receiver: Optional[AuthorizationCodeReceiver] = None,
    ):
        self.oauth = oauth_client
        self.credentials = CredentialStore(token)
        self.receiver = receiver

    def is_authenticated(self) -> bool:
        return self.credentials.snapshot() is not None

    async def authorize(self, receiver: Optional[AuthorizationCodeReceiver] = None) -> OAuthToken:
        """
        Run the interactive authorization and store the resulting token.

        Raises:
            AuthRequired: If no receiver is available or the flow fails
        """
        receiver = receiver or self.receiver
        if receiver is None:
            raise AuthRequired(f"{self.provider_type.value} needs interactive authorization")
        token = await self.oauth.authorize(receiver)
        await self.credentials.set(token)
        log("INFO", "Provider authorized", component=self.provider_type.value)
        return token

    async def _call(self, fn: Callable[[OAuthToken], Awaitable[T]]) -> T:
        used: Optional[OAuthToken] = None

        async def attempt() -> T:
            nonlocal used
            used = await self.credentials.get()
            return await fn(CredentialStore.require(used))

        async def refresh() -> OAuthToken:
            return await self.credentials.refresh(self.oauth.refresh, stale=used)

        return await with_auth_retry(attempt, refresh)
