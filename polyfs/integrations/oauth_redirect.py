"""polyfs/integrations/oauth_redirect.py
Loopback receiver for the interactive OAuth2 redirect.

Opens the system browser on the authorization URL and runs a one-shot
aiohttp.web listener on the configured loopback port. The first request to the
redirect path resolves the pending authorization; the listener is torn down
right after answering it.
"""
from __future__ import annotations

import asyncio
import webbrowser
from typing import Callable, Optional, Tuple

from aiohttp import web

from polyfs.config import settings
from polyfs.file_access.errors import AuthRequired
from polyfs.monitoring.logger import log

REDIRECT_PATH = "/redirect"

_DONE_PAGE = (
    "<html><body><h3>Authorization complete.</h3>"
    "<p>You can close this window and return to the application.</p></body></html>"
)
_FAILED_PAGE = (
    "<html><body><h3>Authorization failed.</h3>"
    "<p>Return to the application and try again.</p></body></html>"
)


class LoopbackAuthorizationReceiver:
    """AuthorizationCodeReceiver backed by the system browser and a local listener."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        path: str = REDIRECT_PATH,
        open_browser: Callable[[str], object] = webbrowser.open,
    ):
        self.host = host or settings.OAUTH_REDIRECT_HOST
        self.port = settings.OAUTH_REDIRECT_PORT if port is None else port
        self.path = path
        self._open_browser = open_browser

    @property
    def redirect_uri(self) -> str:
        return loopback_redirect_uri(self.port, self.path, self.host)

    async def obtain_authorization_code(self, auth_url: str) -> Tuple[str, str]:
        """
        Wait for the browser redirect and return its ``(code, state)``.

        Raises:
            AuthRequired: If the user denied consent or the redirect is malformed
        """
        loop = asyncio.get_running_loop()
        result: asyncio.Future = loop.create_future()

        async def handle_redirect(request: web.Request) -> web.Response:
            query = request.query
            if result.done():
                return web.Response(text=_DONE_PAGE, content_type="text/html")
            if "error" in query:
                result.set_exception(AuthRequired(f"Authorization denied: {query.get('error')}"))
                return web.Response(text=_FAILED_PAGE, content_type="text/html", status=400)
            code, state = query.get("code"), query.get("state")
            if not code or not state:
                result.set_exception(AuthRequired("Authorization redirect missing code or state"))
                return web.Response(text=_FAILED_PAGE, content_type="text/html", status=400)
            result.set_result((code, state))
            return web.Response(text=_DONE_PAGE, content_type="text/html")

        app = web.Application()
        app.router.add_get(self.path, handle_redirect)
        runner = web.AppRunner(app)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self.host, self.port)
            await site.start()
            log("INFO", f"Waiting for OAuth redirect on {self.host}:{self.port}{self.path}",
                component="oauth_redirect")
            self._open_browser(auth_url)
            return await result
        finally:
            await runner.cleanup()


def loopback_redirect_uri(
    port: Optional[int] = None, path: str = REDIRECT_PATH, host: Optional[str] = None
) -> str:
    """Redirect URI pointing at the address the loopback listener binds."""
    host = host or settings.OAUTH_REDIRECT_HOST
    if ":" in host:
        host = f"[{host}]"
    port = settings.OAUTH_REDIRECT_PORT if port is None else port
    return f"http://{host}:{port}{path}"
