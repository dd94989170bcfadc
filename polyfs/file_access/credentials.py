"""
Per-provider OAuth2 credential store.

The store holds an immutable ``OAuthToken`` snapshot behind an asyncio lock.
Writers replace the whole snapshot; readers get the snapshot and use it without
holding the lock. ``refresh`` is deduplicated: a task that saw a token which
has already been replaced by someone else's refresh reuses the new token
instead of refreshing again.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from polyfs.file_access.errors import AuthExpired, AuthRequired
from polyfs.monitoring.logger import log


@dataclass(frozen=True)
class OAuthToken:
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None

    @classmethod
    def from_response(cls, payload: Dict[str, Any], previous: Optional["OAuthToken"] = None) -> "OAuthToken":
        """
        Build a token from a token-endpoint JSON response.

        Refresh responses may omit ``refresh_token``; the previous one is kept
        in that case.
        """
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthRequired("Token response missing access_token")
        expires_at = None
        if payload.get("expires_in") is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(payload["expires_in"]))
        refresh_token = payload.get("refresh_token")
        if refresh_token is None and previous is not None:
            refresh_token = previous.refresh_token
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type=payload.get("token_type", "Bearer"),
            expires_at=expires_at,
            scope=payload.get("scope"),
        )

    def is_expired(self, leeway: int = 30) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at - timedelta(seconds=leeway)

    def auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "scope": self.scope,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuthToken":
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type", "Bearer"),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            scope=data.get("scope"),
        )


TokenCallback = Callable[[Optional[OAuthToken]], Awaitable[None]]
Refresher = Callable[[OAuthToken], Awaitable[OAuthToken]]


class CredentialStore:
    """Mutex-guarded holder of one provider instance's token snapshot."""

    def __init__(self, token: Optional[OAuthToken] = None, on_update: Optional[TokenCallback] = None):
        self._token = token
        self._lock = asyncio.Lock()
        self.on_update = on_update

    def snapshot(self) -> Optional[OAuthToken]:
        """Current token without waiting on the lock (for serialization)."""
        return self._token

    async def get(self) -> Optional[OAuthToken]:
        async with self._lock:
            return self._token

    async def set(self, token: Optional[OAuthToken]) -> None:
        async with self._lock:
            self._token = token
        await self._notify(token)

    @staticmethod
    def require(token: Optional[OAuthToken]) -> OAuthToken:
        """
        Validate a snapshot before using it for a backend attempt.

        Raises:
            AuthRequired: If the provider was never authorized
            AuthExpired: If the token is known to be past its expiry
        """
        if token is None or not token.access_token:
            if token is not None and token.refresh_token:
                raise AuthExpired("No access token; refresh token available")
            raise AuthRequired("Provider is not authenticated")
        if token.is_expired():
            raise AuthExpired("Access token expired")
        return token

    async def refresh(self, refresher: Refresher, stale: Optional[OAuthToken]) -> OAuthToken:
        """
        Replace ``stale`` with a freshly refreshed token.

        If the stored token is no longer ``stale`` another task already
        refreshed it and the stored token is returned as is. When no refresh
        token exists, or the refresh is rejected, the store falls back to
        unauthenticated and ``AuthRequired`` is raised.
        """
        async with self._lock:
            current = self._token
            if current is not None and stale is not None and current != stale and current.access_token:
                return current
            if current is None or not current.refresh_token:
                self._token = None
                fresh = None
            else:
                try:
                    fresh = await refresher(current)
                except AuthRequired:
                    self._token = None
                    fresh = None
                else:
                    self._token = fresh
        if fresh is None:
            log("WARNING", "Token refresh impossible; interactive authorization required",
                component="credentials")
            raise AuthRequired("Refresh failed; interactive authorization required")
        log("INFO", "Access token refreshed", component="credentials")
        await self._notify(fresh)
        return fresh

    async def _notify(self, token: Optional[OAuthToken]) -> None:
        if self.on_update is not None:
            await self.on_update(token)
