"""
Security primitives for the OAuth 2.0 login flow.
CSRF tokens, PKCE verifier/challenge pairs and constant-time comparisons.
"""

import base64
import hashlib
import hmac
import secrets
from typing import Any, Dict, Optional, Tuple

CSRF_TOKEN_BYTES = 32
CODE_VERIFIER_BYTES = 32
HMAC_SECRET_BYTES = 32


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """PKCE code verifier: 32 random bytes, base64url without padding (43 chars)."""
    return _b64url(secrets.token_bytes(CODE_VERIFIER_BYTES))


def generate_code_challenge(code_verifier: str) -> str:
    """S256 challenge: base64url(sha256(verifier)) without padding."""
    return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())


def generate_pkce_pair() -> Tuple[str, str]:
    """Return ``(code_challenge, code_verifier)``."""
    verifier = generate_code_verifier()
    return generate_code_challenge(verifier), verifier


def generate_csrf_token() -> str:
    """
    Generate the unpredictable ``state`` value echoed back by the provider.
    """
    return secrets.token_urlsafe(CSRF_TOKEN_BYTES)


def generate_hmac_secret() -> bytes:
    return secrets.token_bytes(HMAC_SECRET_BYTES)


def constant_time_equals(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two secrets without leaking where they differ."""
    if left is None or right is None:
        return False
    return hmac.compare_digest(left.encode('utf-8'), right.encode('utf-8'))


def mask_secret(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Keep the first few characters of a secret for log correlation."""
    if value is None:
        return None
    if len(value) <= visible * 2:
        return "[REDACTED]"
    return value[:visible] + "..."


SENSITIVE_FRAGMENTS = (
    'secret', 'token', 'verifier', 'password', 'authorization', 'code', 'key',
)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_FRAGMENTS)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``data`` safe to log: sensitive keys redacted, nested dicts included."""
    return {
        key: "[REDACTED]" if _is_sensitive(key)
        else sanitize_log_data(value) if isinstance(value, dict)
        else value
        for key, value in data.items()
    }
