"""OAuth 2.0 authorization-code login flow with PKCE for FastAPI."""

from .core.config import FlowVariant, OAuth2ClientConfig, Settings
from .core.errors import (
    AuthFlowError,
    ConfigError,
    ExchangeError,
    InternalError,
    MissingVerifier,
    StoreError,
    Unauthorized,
)
from .core.session_id import SessionId
from .schemas.oauth import TokenResponse, TransientOAuthState
from .services.handler import AfterLoginCookies, PostLoginHandler, SessionIssuingHandler
from .services.login_flow import FlowState, OAuth2LoginFlow, build_login_flow
from .services.session_context import SessionContext, SessionContextHandle
from .stores import MemorySessionStore, SessionRecord, SessionStore, SignedCookieStore, SqlSessionStore

__version__ = "1.0.0"

__all__ = [
    "AfterLoginCookies",
    "AuthFlowError",
    "ConfigError",
    "ExchangeError",
    "FlowState",
    "FlowVariant",
    "InternalError",
    "MemorySessionStore",
    "MissingVerifier",
    "OAuth2ClientConfig",
    "OAuth2LoginFlow",
    "PostLoginHandler",
    "SessionContext",
    "SessionContextHandle",
    "SessionId",
    "SessionIssuingHandler",
    "SessionRecord",
    "SessionStore",
    "Settings",
    "SignedCookieStore",
    "SqlSessionStore",
    "StoreError",
    "TokenResponse",
    "TransientOAuthState",
    "Unauthorized",
    "build_login_flow",
]
