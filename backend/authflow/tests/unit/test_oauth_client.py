"""
Unit tests for the OAuth 2.0 client wrapper.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from ...core.config import OAuth2ClientConfig
from ...core.errors import ExchangeError, MissingVerifier
from ...core.security import generate_pkce_pair
from ...services.oauth_client import OAuth2Client
from ..fixtures.provider import ACCESS_TOKEN, REFRESH_TOKEN


class TestAuthorizationUrl:
    """Test authorize redirect construction."""

    def test_contains_flow_parameters(self, client_config):
        client = OAuth2Client(client_config)

        url = client.authorization_url("csrf-token", "challenge-value")

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == client_config.authorization_endpoint
        assert query["response_type"] == ["code"]
        assert query["client_id"] == ["test-client-id"]
        assert query["redirect_uri"] == [client_config.redirect_uri]
        assert query["scope"] == ["read:user user:email"]
        assert query["state"] == ["csrf-token"]
        assert query["code_challenge"] == ["challenge-value"]
        assert query["code_challenge_method"] == ["S256"]

    def test_without_pkce_or_scopes(self, plain_client_config):
        client = OAuth2Client(plain_client_config)

        query = parse_qs(urlsplit(client.authorization_url("csrf-token")).query)

        assert "code_challenge" not in query
        assert "code_challenge_method" not in query
        assert "scope" not in query

    def test_keeps_existing_query(self, client_config):
        config = OAuth2ClientConfig.create(
            "tenant",
            client_id="id",
            redirect_uri=client_config.redirect_uri,
            authorization_endpoint="https://idp.example.com/authorize?tenant=acme",
            token_endpoint="https://idp.example.com/token",
        )

        query = parse_qs(urlsplit(OAuth2Client(config).authorization_url("s")).query)

        assert query["tenant"] == ["acme"]
        assert query["state"] == ["s"]


class TestExchangeCode:
    """Test the token endpoint call."""

    @pytest.mark.asyncio
    async def test_successful_exchange_sends_verifier(self, client_config, mock_provider):
        challenge, verifier = generate_pkce_pair()
        mock_provider.codes["code-1"] = challenge

        async with mock_provider.client() as http_client:
            client = OAuth2Client(client_config, http_client)
            token = await client.exchange_code("code-1", verifier)

        assert token.access_token.get_secret_value() == ACCESS_TOKEN
        assert token.refresh_token.get_secret_value() == REFRESH_TOKEN
        request = mock_provider.token_requests[0]
        assert request["grant_type"] == "authorization_code"
        assert request["code"] == "code-1"
        assert request["code_verifier"] == verifier
        assert request["client_id"] == "test-client-id"
        assert request["client_secret"] == "test-client-secret"
        assert request["redirect_uri"] == client_config.redirect_uri

    @pytest.mark.asyncio
    async def test_missing_verifier_makes_no_request(self, client_config, mock_provider):
        async with mock_provider.client() as http_client:
            client = OAuth2Client(client_config, http_client)
            with pytest.raises(MissingVerifier):
                await client.exchange_code("code-1", None)

        assert mock_provider.token_requests == []

    @pytest.mark.asyncio
    async def test_without_pkce_no_verifier_is_sent(self, plain_client_config, mock_provider):
        mock_provider.codes["code-1"] = None

        async with mock_provider.client() as http_client:
            token = await OAuth2Client(plain_client_config, http_client).exchange_code("code-1")

        assert token.access_token.get_secret_value() == ACCESS_TOKEN
        assert "code_verifier" not in mock_provider.token_requests[0]

    @pytest.mark.asyncio
    async def test_wrong_verifier_is_rejected_by_provider(self, client_config, mock_provider):
        challenge, _ = generate_pkce_pair()
        mock_provider.codes["code-1"] = challenge

        async with mock_provider.client() as http_client:
            with pytest.raises(ExchangeError) as exc_info:
                await OAuth2Client(client_config, http_client).exchange_code("code-1", "wrong-verifier")

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_error_body_with_200(self, plain_client_config, mock_provider):
        mock_provider.fail_with = httpx.Response(200, json={"error": "bad_verification_code"})

        async with mock_provider.client() as http_client:
            with pytest.raises(ExchangeError):
                await OAuth2Client(plain_client_config, http_client).exchange_code("code-1")

    @pytest.mark.asyncio
    async def test_missing_access_token(self, plain_client_config, mock_provider):
        mock_provider.fail_with = httpx.Response(200, json={"token_type": "bearer"})

        async with mock_provider.client() as http_client:
            with pytest.raises(ExchangeError):
                await OAuth2Client(plain_client_config, http_client).exchange_code("code-1")

    @pytest.mark.asyncio
    async def test_non_json_body(self, plain_client_config, mock_provider):
        mock_provider.fail_with = httpx.Response(200, text="<html>oops</html>")

        async with mock_provider.client() as http_client:
            with pytest.raises(ExchangeError):
                await OAuth2Client(plain_client_config, http_client).exchange_code("code-1")

    @pytest.mark.asyncio
    async def test_transport_error_is_not_retried(self, plain_client_config, mock_provider):
        mock_provider.raise_error = httpx.ConnectError("connection refused")

        async with mock_provider.client() as http_client:
            with pytest.raises(ExchangeError) as exc_info:
                await OAuth2Client(plain_client_config, http_client).exchange_code("code-1")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert len(mock_provider.token_requests) == 1

    @pytest.mark.asyncio
    async def test_server_error(self, plain_client_config, mock_provider):
        mock_provider.fail_with = httpx.Response(503, text="unavailable")

        async with mock_provider.client() as http_client:
            with pytest.raises(ExchangeError) as exc_info:
                await OAuth2Client(plain_client_config, http_client).exchange_code("code-1")

        assert exc_info.value.status_code == 503
