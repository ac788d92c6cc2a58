"""
Post-login handler contract.

The login flow calls the handler exactly once per successful callback; the
returned response becomes the callback's response, with the cookie changes
made through :class:`AfterLoginCookies` merged in.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from fastapi import status
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from ..core.cookies import Cookie, CookieJar, CookieOptions
from ..core.logging import get_logger
from ..schemas.oauth import AuthenticatedPrincipal, TokenResponse
from .session_context import SessionContextHandle

logger = get_logger(__name__)


class AfterLoginCookies:
    """Cookie view handed to a post-login handler."""

    def __init__(self, jar: CookieJar, cookie_options: CookieOptions):
        self._jar = jar
        self._cookie_options = cookie_options

    def get(self, name: str) -> Optional[str]:
        return self._jar.get(name)

    def add(self, cookie: Cookie) -> None:
        self._jar.add(cookie)

    def remove(self, options: CookieOptions) -> Optional[str]:
        return self._jar.remove(options)

    def cookie(self, name: str) -> CookieOptions:
        """Options derived from the flow's cookie defaults, under ``name``."""
        return self._cookie_options.named(name)


class PostLoginHandler(ABC):
    """Turns a token response into the application's answer to the callback."""

    @abstractmethod
    async def after_login(self, token_response: TokenResponse, cookies: AfterLoginCookies) -> Response:
        ...


class SessionIssuingHandler(PostLoginHandler):
    """Store the authenticated principal in an application session and redirect."""

    def __init__(
        self,
        sessions: SessionContextHandle[AuthenticatedPrincipal],
        provider: str,
        redirect_to: str = "/",
    ):
        self.sessions = sessions
        self.provider = provider
        self.redirect_to = redirect_to

    async def after_login(self, token_response: TokenResponse, cookies: AfterLoginCookies) -> Response:
        principal = AuthenticatedPrincipal(
            provider=self.provider,
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token,
            authenticated_at=datetime.now(timezone.utc),
        )
        cookie = await self.sessions.create_session(principal)
        cookies.add(cookie)

        logger.info(
            "application_session_created",
            provider=self.provider,
            redirect_to=self.redirect_to,
        )
        return RedirectResponse(url=self.redirect_to, status_code=status.HTTP_303_SEE_OTHER)

    def __repr__(self) -> str:
        return f"SessionIssuingHandler(provider={self.provider!r}, redirect_to={self.redirect_to!r})"
