"""
Security tests for PKCE, CSRF tokens and log masking.
"""

import base64
import hashlib

from ...core.logging import mask_sensitive_values
from ...core.security import (
    constant_time_equals,
    generate_code_challenge,
    generate_code_verifier,
    generate_csrf_token,
    generate_pkce_pair,
    mask_secret,
    sanitize_log_data,
)


class TestPkce:
    """Test PKCE code verifier and challenge generation."""

    def test_generate_code_verifier(self):
        """Test PKCE code verifier generation."""
        verifier = generate_code_verifier()

        assert isinstance(verifier, str)
        assert 43 <= len(verifier) <= 128
        assert all(c.isalnum() or c in '-_' for c in verifier)

    def test_generate_code_challenge(self):
        """Test PKCE code challenge generation."""
        verifier = generate_code_verifier()
        challenge = generate_code_challenge(verifier)

        assert len(challenge) == 43
        assert challenge == generate_code_challenge(verifier)
        expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).decode().rstrip('=')
        assert challenge == expected

    def test_rfc7636_example(self):
        """The worked example from RFC 7636 appendix B."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_pkce_pair_order(self):
        challenge, verifier = generate_pkce_pair()

        assert challenge == generate_code_challenge(verifier)


class TestCsrf:
    """Test CSRF token generation and comparison."""

    def test_tokens_are_unique_and_url_safe(self):
        tokens = {generate_csrf_token() for _ in range(100)}

        assert len(tokens) == 100
        assert all(len(token) >= 43 for token in tokens)
        assert all(c.isalnum() or c in '-_' for token in tokens for c in token)

    def test_constant_time_equals(self):
        token = generate_csrf_token()

        assert constant_time_equals(token, token)
        assert not constant_time_equals(token, token[:-1])
        assert not constant_time_equals(token, None)
        assert not constant_time_equals(None, None)
        assert not constant_time_equals("é", "e")


class TestLogMasking:
    """Secrets never reach the log output in full."""

    def test_mask_secret(self):
        assert mask_secret("gho_1234567890abcdef") == "gho_..."
        assert mask_secret("short") == "[REDACTED]"
        assert mask_secret(None) is None

    def test_sanitize_log_data(self):
        data = {
            "client_secret": "secret",
            "nested": {"access_token": "token", "provider": "github"},
            "provider": "github",
        }

        sanitized = sanitize_log_data(data)

        assert sanitized["client_secret"] == "[REDACTED]"
        assert sanitized["nested"]["access_token"] == "[REDACTED]"
        assert sanitized["nested"]["provider"] == "github"
        assert sanitized["provider"] == "github"

    def test_structlog_processor_masks_known_keys(self):
        event = {
            "event": "oauth_token_exchanged",
            "access_token": "gho_1234567890abcdef",
            "code_verifier": "abc",
            "provider": "github",
        }

        masked = mask_sensitive_values(None, "info", event)

        assert masked["access_token"] == "gho_..."
        assert masked["code_verifier"] == "[REDACTED]"
        assert masked["provider"] == "github"
