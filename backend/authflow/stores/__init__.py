"""Session stores."""

from .base import SessionRecord, SessionStore
from .memory import MemorySessionStore
from .signed_cookie import SignedCookieStore
from .sql import SqlSessionStore

__all__ = [
    "MemorySessionStore",
    "SessionRecord",
    "SessionStore",
    "SignedCookieStore",
    "SqlSessionStore",
]
