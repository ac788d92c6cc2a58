"""
Demo application wiring the login flow into FastAPI.

Run with ``uvicorn authflow.main:create_app --factory``.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api.deps import require_session
from .api.routes.oauth import create_oauth_router
from .core.config import Settings
from .core.config import settings as default_settings
from .core.cookies import CookieOptions
from .core.logging import configure_logging, get_correlation_id, logger, set_correlation_id
from .db.session import create_engine, create_tables
from .schemas.oauth import AuthenticatedPrincipal, PrincipalResponse, TransientOAuthState
from .services.handler import PostLoginHandler, SessionIssuingHandler
from .services.login_flow import build_login_flow
from .services.session_context import SessionContext, default_cookie_options
from .stores.base import SessionRecord
from .stores.memory import MemorySessionStore
from .stores.sql import SqlSessionStore


def create_app(
    settings: Optional[Settings] = None,
    handler: Optional[PostLoginHandler] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the application.

    Sessions live in the database when ``database_url`` is set and in memory
    otherwise. Without an explicit ``handler`` a successful login stores an
    :class:`AuthenticatedPrincipal` and redirects to ``post_login_redirect``.
    """
    settings = settings or default_settings
    client_config = settings.to_client_config()

    engine = create_engine(settings.database_url) if settings.database_url else None

    session_max_age = settings.session_max_age_minutes * 60
    session_cookie: CookieOptions = default_cookie_options(
        settings.session_cookie_name, dev=settings.dev_cookies
    ).with_max_age(session_max_age)

    if engine is not None:
        app_store = SqlSessionStore(engine, AuthenticatedPrincipal, namespace="app")
        transient_store = None
        if not settings.oauth_stateless:
            transient_store = SqlSessionStore(
                engine, TransientOAuthState, namespace=f"oauth2.{client_config.provider_name}"
            )
    else:
        app_store = MemorySessionStore()
        transient_store = None

    sessions = SessionContext(app_store, cookie_options=session_cookie, expires_after=session_max_age)
    handler = handler or SessionIssuingHandler(
        sessions.handle(), client_config.provider_name, redirect_to=settings.post_login_redirect
    )

    flow = build_login_flow(
        client_config,
        handler,
        store=transient_store,
        stateless=settings.oauth_stateless,
        cookie_secret=settings.oauth_cookie_secret,
        max_login_seconds=settings.oauth_max_login_minutes * 60,
        dev_cookies=settings.dev_cookies,
        login_path=settings.oauth_login_path,
        http_client=http_client,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        configure_logging(settings.log_level, settings.debug)
        logger.info("Starting authflow", provider=client_config.provider_name)

        if engine is not None:
            await create_tables(engine)
        sessions.start()
        flow.transient.start()

        yield

        # Shutdown
        logger.info("Shutting down authflow")
        await flow.aclose()
        await sessions.aclose()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.sessions = sessions
    app.state.login_flow = flow

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to every request and log request/response"""

        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        start_time = time.time()
        logger.info(
            "request_started",
            method=request.method,
            url=str(request.url.path),
            remote_addr=request.client.host if request.client else None
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                url=str(request.url.path),
                error=str(e),
                error_type=type(e).__name__,
                process_time=round(time.time() - start_time, 4)
            )
            raise

        logger.info(
            "request_completed",
            method=request.method,
            url=str(request.url.path),
            status_code=response.status_code,
            process_time=round(time.time() - start_time, 4)
        )
        response.headers["x-correlation-id"] = correlation_id
        return response

    app.include_router(create_oauth_router(flow))

    current_session = require_session(sessions.handle())

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        logger.info("health_check_requested")
        return {"status": "healthy", "correlation_id": get_correlation_id()}

    @app.get("/me", response_model=PrincipalResponse)
    async def me(record: SessionRecord[AuthenticatedPrincipal] = Depends(current_session)) -> PrincipalResponse:
        """Describe the logged-in principal without exposing its tokens."""
        principal = record.state
        return PrincipalResponse(
            provider=principal.provider,
            authenticated_at=principal.authenticated_at,
            has_refresh_token=principal.refresh_token is not None,
        )

    return app
