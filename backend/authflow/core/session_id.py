"""
Opaque session identifiers.
"""

import secrets
import time
import uuid


class SessionId(str):
    """
    Immutable, hashable identifier of a stored session record.

    Fresh ids are UUIDv7 strings, so they sort by creation time. Ids read back
    from a cookie are taken verbatim and may be any string, including a signed
    state token.
    """

    __slots__ = ()

    @classmethod
    def generate(cls) -> "SessionId":
        return cls(str(uuid7()))

    @classmethod
    def from_cookie(cls, value: str) -> "SessionId":
        return cls(value)

    def __repr__(self) -> str:
        return f"SessionId({str.__repr__(self)})"


def uuid7() -> uuid.UUID:
    """Build a version 7 UUID: 48-bit unix milliseconds followed by random bits."""
    unix_ms = time.time_ns() // 1_000_000
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    value = (unix_ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76
    value |= rand_a << 64
    value |= 0b10 << 62
    value |= rand_b
    return uuid.UUID(int=value)
