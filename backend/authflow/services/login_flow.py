"""
OAuth 2.0 login flow controller.

Drives one login from the redirect to the provider to the post-login
handler, guarding the round trip with a one-shot transient state record.
Every rejected callback gets the same 401 body; server-side failures get a
500. The transient cookie is deleted on every callback response.
"""

from enum import Enum
from typing import Callable, Mapping, Optional, Union

import httpx
from fastapi import status
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from ..core.config import OAuth2ClientConfig
from ..core.cookies import CookieJar, CookieOptions
from ..core.errors import (
    ConfigError,
    InternalError,
    StoreError,
    Unauthorized,
    create_internal_error_response,
    create_unauthorized_response,
)
from ..core.logging import get_correlation_id, get_logger
from ..core.security import constant_time_equals, generate_csrf_token, generate_pkce_pair, mask_secret
from ..core.session_id import SessionId
from ..core.signed_state import SignedStateCodec
from ..schemas.oauth import TransientOAuthState
from ..stores.base import SessionStore
from ..stores.memory import MemorySessionStore
from ..stores.signed_cookie import SignedCookieStore
from ..utils.clock import Clock, utc_now_secs
from .handler import AfterLoginCookies, PostLoginHandler
from .oauth_client import OAuth2Client
from .session_context import SessionContext, default_cookie_options

logger = get_logger(__name__)

DEFAULT_MAX_LOGIN_SECONDS = 30 * 60
TRANSIENT_COOKIE_PREFIX = "oauth2.session."


class FlowState(str, Enum):
    IDLE = "idle"
    CHALLENGE_STARTED = "challenge_started"
    CALLBACK_RECEIVED = "callback_received"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


def transient_cookie_name(provider_name: str) -> str:
    return f"{TRANSIENT_COOKIE_PREFIX}{provider_name}"


def transient_cookie_options(
    config: OAuth2ClientConfig,
    max_login_seconds: int,
    dev: bool = False,
) -> CookieOptions:
    """
    Cookie carrying the transient state between start and callback.

    In production the cookie is Secure and only sent to the callback path.
    Development cookies are sent everywhere over plain http.
    """
    name = transient_cookie_name(config.provider_name)
    if dev:
        return CookieOptions(
            name=name, path="/", max_age=max_login_seconds, secure=False, httponly=True, samesite="lax"
        )
    return CookieOptions(
        name=name,
        path=config.callback_path,
        max_age=max_login_seconds,
        secure=True,
        httponly=True,
        samesite="lax",
    )


class OAuth2LoginFlow:
    """Controller for the authorization-code login flow."""

    def __init__(
        self,
        client: OAuth2Client,
        transient: SessionContext[TransientOAuthState],
        handler: PostLoginHandler,
        login_path: Optional[str] = None,
        after_login_cookie_options: Optional[CookieOptions] = None,
        max_login_seconds: int = DEFAULT_MAX_LOGIN_SECONDS,
        clock: Clock = utc_now_secs,
    ):
        self.client = client
        self.transient = transient
        self.handler = handler
        self.login_path = login_path
        self.after_login_cookie_options = after_login_cookie_options or default_cookie_options()
        self.max_login_seconds = max_login_seconds
        self._clock = clock

    @property
    def config(self) -> OAuth2ClientConfig:
        return self.client.config

    @property
    def callback_path(self) -> str:
        return self.config.callback_path

    @property
    def provider_name(self) -> str:
        return self.config.provider_name

    def _log_state(self, flow_state: FlowState, **kwargs) -> None:
        logger.info("oauth_flow_state", provider=self.provider_name, flow_state=flow_state.value, **kwargs)

    async def start_challenge(self) -> Response:
        """
        Begin a login: persist fresh CSRF and PKCE state, then send the
        browser to the provider with a 303 and the transient cookie.
        """
        self._log_state(FlowState.IDLE)

        csrf_token = generate_csrf_token()
        pkce_challenge = None
        pkce_verifier = None
        if self.client.uses_pkce:
            pkce_challenge, pkce_verifier = generate_pkce_pair()

        state = TransientOAuthState(csrf_token=csrf_token, pkce_verifier=pkce_verifier)
        try:
            cookie = await self.transient.create_session(state)
        except StoreError as e:
            logger.error(
                "oauth_transient_state_store_failed",
                provider=self.provider_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return create_internal_error_response(get_correlation_id())

        response = RedirectResponse(
            url=self.client.authorization_url(csrf_token, pkce_challenge),
            status_code=status.HTTP_303_SEE_OTHER,
        )
        cookie.set_on(response)

        self._log_state(
            FlowState.CHALLENGE_STARTED,
            state=mask_secret(csrf_token),
            pkce=pkce_challenge is not None,
        )
        return response

    async def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        cookies: Mapping[str, str],
        error: Optional[str] = None,
    ) -> Response:
        """
        Finish a login.

        The transient record is consumed before any check runs, so a callback
        can succeed at most once and a replay looks like a login that never
        started.
        """
        jar = CookieJar(cookies)
        self._log_state(FlowState.CALLBACK_RECEIVED)

        try:
            response = await self._complete(jar, code, state, error)
        except Unauthorized as e:
            self._log_state(FlowState.REJECTED, reason=str(e), error_type=type(e).__name__)
            response = create_unauthorized_response(get_correlation_id())
        except InternalError as e:
            logger.error(
                "oauth_callback_failed",
                provider=self.provider_name,
                flow_state=FlowState.REJECTED.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            response = create_internal_error_response(get_correlation_id())
        else:
            self._log_state(FlowState.AUTHENTICATED)
            return jar.apply(response)

        # Only the transient cookie deletion survives a failed callback.
        for cookie in jar.removals:
            cookie.delete_on(response)
        return response

    async def _complete(
        self,
        jar: CookieJar,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
    ) -> Response:
        cookie_value = jar.remove(self.transient.cookie_options)
        if not cookie_value:
            raise Unauthorized("transient state cookie missing")

        record = await self.transient.store.remove(SessionId.from_cookie(cookie_value))
        if record is None:
            raise Unauthorized("transient state not found")

        if record.created_at < self._clock() - self.max_login_seconds:
            raise Unauthorized("transient state expired")

        if error:
            raise Unauthorized(f"provider returned error: {error}")

        if not constant_time_equals(record.state.csrf_token, state):
            raise Unauthorized("csrf token mismatch")

        if not code:
            raise Unauthorized("authorization code missing")

        token_response = await self.client.exchange_code(code, record.state.pkce_verifier)

        cookies = AfterLoginCookies(jar, self.after_login_cookie_options)
        return await self.handler.after_login(token_response, cookies)

    async def aclose(self) -> None:
        await self.transient.aclose()


def build_login_flow(
    config: OAuth2ClientConfig,
    handler: PostLoginHandler,
    *,
    store: Optional[SessionStore[TransientOAuthState]] = None,
    stateless: bool = True,
    cookie_secret: Optional[Union[str, bytes]] = None,
    max_login_seconds: int = DEFAULT_MAX_LOGIN_SECONDS,
    dev_cookies: bool = False,
    cookie: Optional[Callable[[CookieOptions], CookieOptions]] = None,
    login_path: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Clock = utc_now_secs,
) -> OAuth2LoginFlow:
    """
    Assemble a login flow.

    With an explicit ``store`` the transient state is kept server-side;
    otherwise ``stateless`` selects between a signed cookie and an
    in-process memory store. ``cookie`` may rewrite the transient cookie's
    options after the defaults are applied.
    """
    if max_login_seconds <= 0:
        raise ConfigError("max login duration must be positive")

    if store is None:
        if stateless:
            if isinstance(cookie_secret, str):
                cookie_secret = cookie_secret.encode("utf-8")
            codec = SignedStateCodec(config.provider_name, max_login_seconds, cookie_secret, clock)
            store = SignedCookieStore(codec)
        else:
            store = MemorySessionStore(clock)

    cookie_options = transient_cookie_options(config, max_login_seconds, dev=dev_cookies)
    if cookie is not None:
        cookie_options = cookie(cookie_options)

    transient = SessionContext(
        store,
        cookie_options=cookie_options,
        expires_after=max_login_seconds,
        clock=clock,
    )

    logger.info(
        "oauth_login_flow_configured",
        provider=config.provider_name,
        store=type(store).__name__,
        pkce=config.flow_variant.uses_pkce,
        dev_cookies=dev_cookies,
        callback_path=config.callback_path,
    )

    return OAuth2LoginFlow(
        client=OAuth2Client(config, http_client),
        transient=transient,
        handler=handler,
        login_path=login_path,
        after_login_cookie_options=default_cookie_options(dev=dev_cookies),
        max_login_seconds=max_login_seconds,
        clock=clock,
    )
