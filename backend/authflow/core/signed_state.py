"""
Stateless carrier for the transient login state.

A token is ``base64url(json_payload || hmac_sha256(json_payload))`` without
padding. Decoding never explains a failure: a malformed, truncated, forged,
foreign or expired token all come back as ``None``.
"""

import base64
import binascii
import hashlib
import hmac
from typing import Optional

from pydantic import ValidationError

from ..schemas.oauth import SignedStatePayload, TransientOAuthState
from ..utils.clock import Clock, utc_now_secs
from .errors import ConfigError
from .security import generate_hmac_secret

HMAC_TAG_LEN = hashlib.sha256().digest_size


def _sign(data: bytes, secret: bytes) -> bytes:
    return hmac.new(secret, data, hashlib.sha256).digest()


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(token: str) -> Optional[bytes]:
    if not token or not token.isascii():
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError):
        return None
    # Reject alternative spellings of the same bytes (e.g. unused trailing bits).
    if _b64encode(raw) != token:
        return None
    return raw


def encode(payload: SignedStatePayload, secret: bytes) -> str:
    data = payload.model_dump_json().encode("utf-8")
    return _b64encode(data + _sign(data, secret))


def decode(token: str, secret: bytes, now: Optional[int] = None) -> Optional[SignedStatePayload]:
    raw = _b64decode(token)
    if raw is None or len(raw) <= HMAC_TAG_LEN:
        return None

    data, tag = raw[:-HMAC_TAG_LEN], raw[-HMAC_TAG_LEN:]
    if not hmac.compare_digest(tag, _sign(data, secret)):
        return None

    try:
        payload = SignedStatePayload.model_validate_json(data)
    except ValidationError:
        return None

    now = utc_now_secs() if now is None else now
    if now < payload.issued or now > payload.expires:
        return None
    return payload


class SignedStateCodec:
    """Binds a server secret and a provider to the encode/decode pair."""

    def __init__(
        self,
        provider_name: str,
        max_login_seconds: int,
        secret: Optional[bytes] = None,
        clock: Clock = utc_now_secs,
    ):
        if max_login_seconds <= 0:
            raise ConfigError("max login duration must be positive")
        self.provider_name = provider_name
        self.max_login_seconds = max_login_seconds
        # A random secret does not survive a restart: in-flight logins are lost.
        self._secret = secret or generate_hmac_secret()
        self._clock = clock

    def issue(self, state: TransientOAuthState) -> str:
        issued = self._clock()
        payload = SignedStatePayload(
            csrf_token=state.csrf_token,
            pkce_verifier=state.pkce_verifier,
            provider_name=self.provider_name,
            issued=issued,
            expires=issued + self.max_login_seconds,
        )
        return encode(payload, self._secret)

    def verify(self, token: str) -> Optional[SignedStatePayload]:
        payload = decode(token, self._secret, now=self._clock())
        if payload is None or payload.provider_name != self.provider_name:
            return None
        return payload
