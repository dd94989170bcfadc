"""polyfs/integrations/oauth.py
OAuth2 authorization code flow (with PKCE) and token refresh.

Responsibilities:
- Build the authorization URL with a CSRF state and a PKCE challenge
- Exchange the authorization code for a token pair
- Refresh an access token with the stored refresh token

The browser / redirect listener part is behind ``AuthorizationCodeReceiver``
(see ``oauth_redirect.py``) so the token lifecycle is testable without a
browser or a listening socket.
"""
from __future__ import annotations

import base64
import hashlib
import json
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import urlencode

import aiohttp

from polyfs.file_access.credentials import OAuthToken
from polyfs.file_access.errors import AuthExpired, AuthRequired, ProviderConfigError, TransportError
from polyfs.integrations.http import HttpClient
from polyfs.monitoring.logger import log


class AuthorizationCodeReceiver(Protocol):
    """Obtains ``(code, state)`` for an authorization URL, e.g. via a browser."""

    async def obtain_authorization_code(self, auth_url: str) -> Tuple[str, str]:
        ...


@dataclass
class OAuthClientConfig:
    client_id: str
    authorize_url: str
    token_url: str
    redirect_uri: str
    scopes: List[str] = field(default_factory=list)
    client_secret: Optional[str] = None

    @classmethod
    def from_google_client_secret(cls, raw: str, scopes: List[str], redirect_uri: str) -> "OAuthClientConfig":
        """Parse an installed-app (or web) client secret JSON as downloaded from the Google console."""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise ProviderConfigError(f"Google client secret is not valid JSON: {exc}") from exc
        section = data.get("installed") or data.get("web") or data
        try:
            return cls(
                client_id=section["client_id"],
                client_secret=section.get("client_secret"),
                authorize_url=section.get("auth_uri", "https://accounts.google.com/o/oauth2/auth"),
                token_url=section.get("token_uri", "https://oauth2.googleapis.com/token"),
                redirect_uri=redirect_uri,
                scopes=scopes,
            )
        except KeyError as exc:
            raise ProviderConfigError(f"Google client secret missing {exc}") from exc


@dataclass(frozen=True)
class AuthorizationRequest:
    url: str
    state: str
    code_verifier: str


def _pkce_pair() -> Tuple[str, str]:
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


class OAuth2Client:
    """OAuth2 client for one provider's authorization server."""

    def __init__(self, config: OAuthClientConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._http = HttpClient(session, component="oauth")

    def authorization_request(self) -> AuthorizationRequest:
        state = secrets.token_urlsafe(24)
        verifier, challenge = _pkce_pair()
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(self.config.scopes),
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "access_type": "offline",
        }
        return AuthorizationRequest(
            url=f"{self.config.authorize_url}?{urlencode(params)}",
            state=state,
            code_verifier=verifier,
        )

    async def _token_request(self, data: Dict[str, Any], operation: str) -> Dict[str, Any]:
        data = {**data, "client_id": self.config.client_id}
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret
        try:
            response = await self._http.request("POST", self.config.token_url, operation, data=data)
        except AuthExpired as exc:
            raise AuthRequired(f"{operation} rejected by the authorization server") from exc
        except TransportError as exc:
            # invalid_grant / invalid_client come back as 400
            if exc.status == 400:
                raise AuthRequired(f"{operation} rejected by the authorization server") from exc
            raise
        return response.json()

    async def exchange_code(self, code: str, code_verifier: str) -> OAuthToken:
        payload = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.redirect_uri,
                "code_verifier": code_verifier,
            },
            "Authorization code exchange",
        )
        log("INFO", "OAuth token acquired", component="oauth")
        return OAuthToken.from_response(payload)

    async def refresh(self, token: OAuthToken) -> OAuthToken:
        """
        Exchange the refresh token for a new access token.

        Raises:
            AuthRequired: If there is no refresh token or the server rejects it
        """
        if not token.refresh_token:
            raise AuthRequired("No refresh token available")
        payload = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": token.refresh_token},
            "Token refresh",
        )
        return OAuthToken.from_response(payload, previous=token)

    async def authorize(self, receiver: AuthorizationCodeReceiver) -> OAuthToken:
        """
        Run the interactive authorization code flow.

        Raises:
            AuthRequired: If the redirect carries a state other than the one sent
        """
        request = self.authorization_request()
        code, state = await receiver.obtain_authorization_code(request.url)
        if not secrets.compare_digest(state, request.state):
            log("ERROR", "OAuth redirect state mismatch", component="oauth")
            raise AuthRequired("Authorization state mismatch")
        return await self.exchange_code(code, request.code_verifier)
