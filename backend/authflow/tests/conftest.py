"""
Test configuration and fixtures for all tests.
"""

import os

import pytest

os.environ.update({
    "AUTHFLOW_APP_NAME": "authflow test",
    "AUTHFLOW_DEBUG": "false",
    "AUTHFLOW_LOG_LEVEL": "INFO",
    "AUTHFLOW_OAUTH_CLIENT_ID": "test-client-id",
    "AUTHFLOW_OAUTH_CLIENT_SECRET": "test-client-secret",
})

from ..core.config import OAuth2ClientConfig
from .fixtures.provider import (
    AUTH_URL,
    REDIRECT_URI,
    TOKEN_URL,
    FakeClock,
    MockProvider,
    RecordingHandler,
)


@pytest.fixture
def client_config() -> OAuth2ClientConfig:
    """PKCE-enabled client configuration for a mock provider."""
    return OAuth2ClientConfig.create(
        "github",
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri=REDIRECT_URI,
        authorization_endpoint=AUTH_URL,
        token_endpoint=TOKEN_URL,
        scopes=["read:user", "user:email"],
    )


@pytest.fixture
def plain_client_config() -> OAuth2ClientConfig:
    """Same client without PKCE."""
    return OAuth2ClientConfig.create(
        "github",
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri=REDIRECT_URI,
        authorization_endpoint=AUTH_URL,
        token_endpoint=TOKEN_URL,
        use_pkce=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()
