"""
OAuth 2.0 client for the authorization-code grant.
Builds authorization URLs and exchanges authorization codes for tokens.
"""

from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx
from pydantic import ValidationError

from ..core.config import OAuth2ClientConfig
from ..core.errors import ExchangeError, MissingVerifier
from ..core.logging import get_logger
from ..core.security import mask_secret, sanitize_log_data
from ..schemas.oauth import TokenResponse

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class OAuth2Client:
    """Holds the provider configuration and performs the two provider calls."""

    def __init__(self, config: OAuth2ClientConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._http_client = http_client

    @property
    def uses_pkce(self) -> bool:
        return self.config.flow_variant.uses_pkce

    def authorization_url(self, csrf_token: str, pkce_challenge: Optional[str] = None) -> str:
        """
        Build the provider's authorize URL for this flow.
        Query parameters already present on the configured endpoint are kept.
        """
        params = [
            ("response_type", "code"),
            ("client_id", self.config.client_id),
            ("redirect_uri", self.config.redirect_uri),
        ]
        if self.config.scopes:
            params.append(("scope", " ".join(self.config.scopes)))
        params.append(("state", csrf_token))
        if pkce_challenge is not None:
            params.append(("code_challenge", pkce_challenge))
            params.append(("code_challenge_method", "S256"))

        parts = urlsplit(self.config.authorization_endpoint)
        query = parse_qsl(parts.query, keep_blank_values=True) + params
        return urlunsplit(parts._replace(query=urlencode(query)))

    def _token_request_data(self, code: str, pkce_verifier: Optional[str]) -> Dict[str, str]:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret
        if self.uses_pkce:
            data["code_verifier"] = pkce_verifier
        return data

    async def exchange_code(self, code: str, pkce_verifier: Optional[str] = None) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Raises MissingVerifier before any network traffic when PKCE is required
        but no verifier is available, and ExchangeError for every transport or
        provider failure. Nothing is retried.
        """
        if self.uses_pkce and not pkce_verifier:
            raise MissingVerifier("PKCE code verifier missing from request")

        data = self._token_request_data(code, pkce_verifier)
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.config.token_endpoint, data=data, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT, follow_redirects=False) as client:
                    response = await client.post(self.config.token_endpoint, data=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "oauth_token_exchange_rejected",
                provider=self.config.provider_name,
                status_code=e.response.status_code,
            )
            raise ExchangeError("token endpoint rejected the exchange", e.response.status_code) from e
        except httpx.RequestError as e:
            logger.error(
                "oauth_token_exchange_request_failed",
                provider=self.config.provider_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExchangeError("token endpoint unavailable") from e

        token_response = self._parse_token_response(response)
        logger.info(
            "oauth_token_exchanged",
            provider=self.config.provider_name,
            access_token=mask_secret(token_response.access_token.get_secret_value()),
            has_refresh_token=token_response.refresh_token is not None,
        )
        return token_response

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        try:
            body: Any = response.json()
        except ValueError as e:
            raise ExchangeError("token endpoint returned a non-JSON body", response.status_code) from e

        if not isinstance(body, dict):
            raise ExchangeError("token endpoint returned an unexpected body", response.status_code)

        # Some providers (GitHub) answer 200 with an error document.
        if "error" in body:
            logger.error(
                "oauth_token_exchange_error_body",
                provider=self.config.provider_name,
                response_body=sanitize_log_data(body),
            )
            raise ExchangeError(f"token endpoint returned error: {body.get('error')}", response.status_code)

        try:
            return TokenResponse.model_validate(body)
        except ValidationError as e:
            raise ExchangeError("token endpoint response is missing access_token", response.status_code) from e
