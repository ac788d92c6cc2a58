"""Storeless transient-state store: the cookie value is the state."""

from __future__ import annotations

import typing as t

from ..core.session_id import SessionId
from ..core.signed_state import SignedStateCodec
from ..schemas.oauth import TransientOAuthState
from .base import SessionRecord, SessionStore


class SignedCookieStore(SessionStore[TransientOAuthState]):
    """Keeps no server-side state.

    :meth:`create` returns a signed, expiring token which the caller places in
    the cookie. :meth:`load` and :meth:`remove` verify the token presented
    back; discarding the cookie is what consumes the state. Expiry is carried
    by the token itself, so no maintenance task is needed.
    """

    def __init__(self, codec: SignedStateCodec) -> None:
        self.codec = codec

    def wants_maintenance_task(self) -> bool:
        return False

    async def create(self, state: TransientOAuthState) -> SessionId:
        return SessionId(self.codec.issue(state))

    async def persist(self, record: SessionRecord[TransientOAuthState]) -> None:
        raise NotImplementedError("signed cookies are produced by create()")

    async def load(self, session_id: SessionId) -> t.Optional[SessionRecord[TransientOAuthState]]:
        payload = self.codec.verify(session_id)
        if payload is None:
            return None
        return SessionRecord(id=session_id, created_at=payload.issued, state=payload.to_state())

    async def remove(self, session_id: SessionId) -> t.Optional[SessionRecord[TransientOAuthState]]:
        return await self.load(session_id)

    async def sweep(self, deadline: int) -> int:
        return 0
