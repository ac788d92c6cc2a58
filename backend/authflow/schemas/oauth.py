"""
Schemas for the OAuth 2.0 login flow: transient state, signed payloads and tokens.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, SerializationInfo, field_serializer


class TransientOAuthState(BaseModel):
    """Mid-flow data that must survive exactly one redirect round trip."""

    model_config = ConfigDict(frozen=True)

    csrf_token: str = Field(..., description="Value sent as the OAuth state parameter")
    pkce_verifier: Optional[str] = Field(None, description="PKCE code verifier, when PKCE is enabled")


class SignedStatePayload(BaseModel):
    """Self-contained transient state carried by a signed cookie."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    csrf_token: str
    pkce_verifier: Optional[str] = None
    provider_name: str
    issued: int = Field(..., ge=0, description="Unix seconds when the flow started")
    expires: int = Field(..., ge=0, description="Unix seconds after which the state is void")

    def to_state(self) -> TransientOAuthState:
        return TransientOAuthState(csrf_token=self.csrf_token, pkce_verifier=self.pkce_verifier)


class TokenResponse(BaseModel):
    """Tokens returned by the provider's token endpoint."""

    access_token: SecretStr = Field(..., description="Provider access token")
    refresh_token: Optional[SecretStr] = Field(None, description="Provider refresh token")
    token_type: Optional[str] = Field(None, description="Token type, usually bearer")
    expires_in: Optional[int] = Field(None, description="Access token lifetime in seconds")
    scope: Optional[str] = Field(None, description="Scopes granted by the provider")


class AuthenticatedPrincipal(BaseModel):
    """Application session established after a successful login."""

    provider: str = Field(..., description="Provider that authenticated the user")
    access_token: SecretStr = Field(..., description="Provider access token")
    refresh_token: Optional[SecretStr] = Field(None, description="Provider refresh token")
    authenticated_at: datetime = Field(..., description="When the login flow completed")

    @field_serializer("access_token", "refresh_token", when_used="json")
    def dump_secret(self, value: Optional[SecretStr], info: SerializationInfo) -> Optional[str]:
        # Stores persisting a principal pass context={"reveal_secrets": True}.
        if value is None:
            return None
        if info.context and info.context.get("reveal_secrets"):
            return value.get_secret_value()
        return str(value)


class PrincipalResponse(BaseModel):
    """Public view of the current session."""

    provider: str
    authenticated_at: datetime
    has_refresh_token: bool
