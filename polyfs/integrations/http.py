"""polyfs/integrations/http.py
Minimal aiohttp wrapper shared by the cloud drive clients.

Responsibilities:
- Reuse an injected session or open a short-lived one per request
- Attach the bearer token
- Translate HTTP failures into the file access error taxonomy
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from polyfs.file_access.credentials import OAuthToken
from polyfs.file_access.errors import AuthExpired, Conflict, NotFound, TransportError
from polyfs.monitoring.logger import log


@dataclass
class RawResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        if not self.body:
            return {}
        return json.loads(self.body)

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


def raise_for_status(status: int, text: str, operation: str) -> None:
    """Map an HTTP error status onto the error taxonomy."""
    if status < 400:
        return
    message = f"{operation} failed: {status} {text[:200]}"
    if status == 401:
        raise AuthExpired(message)
    if status == 404:
        raise NotFound(message)
    if status in (409, 412):
        raise Conflict(message)
    raise TransportError(message, status=status)


class HttpClient:
    """Thin request helper; one instance per backend client."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, component: str = "http"):
        self._external_session = session
        self.component = component

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._external_session is not None:
            return self._external_session
        return aiohttp.ClientSession(headers={"Accept": "application/json"})

    async def request(
        self,
        method: str,
        url: str,
        operation: str,
        token: Optional[OAuthToken] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> RawResponse:
        """
        Perform one HTTP request.

        Args:
            method: HTTP verb
            url: Absolute URL
            operation: Human readable label used in logs and error messages
            token: Bearer token to attach, if any
            headers: Extra request headers
            **kwargs: Passed to ``session.request`` (params, json, data)

        Returns:
            RawResponse with status, headers and the full body

        Raises:
            AuthExpired, NotFound, Conflict, TransportError
        """
        request_headers = dict(headers or {})
        if token is not None:
            request_headers.update(token.auth_header())
        session = await self._get_session()
        try:
            async with session.request(method, url, headers=request_headers, **kwargs) as resp:
                body = await resp.read()
                response = RawResponse(status=resp.status, headers=dict(resp.headers or {}), body=body)
        except aiohttp.ClientError as exc:
            log("ERROR", f"{operation} transport failure: {exc}", component=self.component)
            raise TransportError(f"{operation} failed: {exc}") from exc
        finally:
            if self._external_session is None:
                await session.close()

        if response.status >= 400:
            log("WARNING", f"{operation} returned {response.status}", component=self.component,
                status=response.status)
            raise_for_status(response.status, response.text(), operation)
        return response
