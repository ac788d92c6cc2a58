import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .providers import PROVIDERS, get_provider


class FlowVariant(str, Enum):
    """Which flavour of the authorization-code grant the client speaks."""

    AUTHORIZATION_CODE = "authorization_code"
    AUTHORIZATION_CODE_PKCE = "authorization_code_pkce"

    @property
    def uses_pkce(self) -> bool:
        return self is FlowVariant.AUTHORIZATION_CODE_PKCE


def _require_url(value: Optional[str], missing: str, invalid: str) -> str:
    if not value:
        raise ConfigError(missing)
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"{invalid}: {value!r}")
    return value


def read_env(name: str) -> str:
    """Read a required environment variable, failing at construction time."""
    value = os.environ.get(name)
    if not value:
        raise ConfigError(f"env: {name} does not exist")
    return value


@dataclass(frozen=True)
class OAuth2ClientConfig:
    """Provider endpoints and client credentials, validated once and shared read-only."""

    provider_name: str
    client_id: str
    authorization_endpoint: str
    token_endpoint: str
    redirect_uri: str
    client_secret: Optional[str] = field(default=None, repr=False)
    scopes: Tuple[str, ...] = ()
    flow_variant: FlowVariant = FlowVariant.AUTHORIZATION_CODE_PKCE

    @classmethod
    def create(
        cls,
        provider_name: str,
        *,
        client_id: Optional[str] = None,
        client_id_env: Optional[str] = None,
        client_secret: Optional[str] = None,
        client_secret_env: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        redirect_uri_env: Optional[str] = None,
        authorization_endpoint: Optional[str] = None,
        token_endpoint: Optional[str] = None,
        preset: Optional[str] = None,
        scopes: Sequence[str] = (),
        use_pkce: bool = True,
    ) -> "OAuth2ClientConfig":
        """
        Validate every field and build the configuration.

        Values given inline win over ``*_env`` names; endpoints fall back to the
        named provider preset. Raises ConfigError on the first problem found.
        """
        if not provider_name or any(c.isspace() for c in provider_name):
            raise ConfigError("provider name can't be empty or contain whitespaces")

        if client_id is None and client_id_env:
            client_id = read_env(client_id_env)
        if not client_id:
            raise ConfigError("client id is missing")

        if client_secret is None and client_secret_env:
            client_secret = read_env(client_secret_env)

        if redirect_uri is None and redirect_uri_env:
            redirect_uri = read_env(redirect_uri_env)

        if preset:
            provider = get_provider(preset)
            authorization_endpoint = authorization_endpoint or provider.authorization_endpoint
            token_endpoint = token_endpoint or provider.token_endpoint

        return cls(
            provider_name=provider_name,
            client_id=client_id,
            client_secret=client_secret or None,
            redirect_uri=_require_url(
                redirect_uri, "redirect url is missing", "could not parse redirect url"
            ),
            authorization_endpoint=_require_url(
                authorization_endpoint,
                "authorization url is missing",
                "could not parse authorization url",
            ),
            token_endpoint=_require_url(
                token_endpoint, "token url is missing", "could not parse token url"
            ),
            scopes=tuple(scopes),
            flow_variant=(
                FlowVariant.AUTHORIZATION_CODE_PKCE if use_pkce else FlowVariant.AUTHORIZATION_CODE
            ),
        )

    @property
    def callback_path(self) -> str:
        return urlparse(self.redirect_uri).path or "/"


class Settings(BaseSettings):
    app_name: str = "authflow"
    debug: bool = False
    log_level: str = "INFO"

    database_url: Optional[str] = None
    cors_allow_origins: list[str] = []

    oauth_provider: str = "github"
    oauth_client_id: Optional[str] = None
    oauth_client_secret: Optional[str] = None
    oauth_redirect_uri: str = "http://localhost:8000/auth/callback"
    oauth_auth_url: Optional[str] = None
    oauth_token_url: Optional[str] = None
    oauth_scopes: list[str] = []
    oauth_use_pkce: bool = True
    oauth_login_path: Optional[str] = "/auth/login"
    oauth_stateless: bool = True
    oauth_cookie_secret: Optional[str] = None
    oauth_max_login_minutes: int = 30

    dev_cookies: bool = False

    session_cookie_name: str = "session"
    session_max_age_minutes: int = 60 * 24
    post_login_redirect: str = "/"

    model_config = SettingsConfigDict(
        env_prefix="AUTHFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return v.upper()

    @field_validator("database_url")
    @classmethod
    def validate_db_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        valid_prefixes = [
            "postgresql+asyncpg://",
            "postgresql://",
            "sqlite+aiosqlite://",
            "sqlite://"
        ]
        if not any(v.startswith(prefix) for prefix in valid_prefixes):
            raise ValueError("database_url must start with postgresql://, postgresql+asyncpg://, sqlite://, or sqlite+aiosqlite://")
        return v

    @field_validator("oauth_max_login_minutes", "session_max_age_minutes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("durations must be positive")
        return v

    def to_client_config(self) -> OAuth2ClientConfig:
        return OAuth2ClientConfig.create(
            self.oauth_provider,
            client_id=self.oauth_client_id,
            client_secret=self.oauth_client_secret,
            redirect_uri=self.oauth_redirect_uri,
            authorization_endpoint=self.oauth_auth_url,
            token_endpoint=self.oauth_token_url,
            preset=self.oauth_provider if self.oauth_provider in PROVIDERS else None,
            scopes=self.oauth_scopes,
            use_pkce=self.oauth_use_pkce,
        )


settings = Settings()
