"""In-memory session store for development, tests and single-process deployments."""

from __future__ import annotations

import typing as t
from threading import Lock

from ..core.logging import get_logger
from ..core.session_id import SessionId
from ..utils.clock import Clock, utc_now_secs
from .base import SessionRecord, SessionStore, T

logger = get_logger(__name__)


class MemorySessionStore(SessionStore[T]):
    """Thread-safe in-memory implementation of :class:`SessionStore`.

    The lock is never held across an ``await``, so every operation is atomic
    with respect to other tasks and threads.

    Warning:
        Records live in this process only; use a persistent store when more
        than one worker serves the callback route.
    """

    def __init__(self, clock: Clock = utc_now_secs) -> None:
        self._records: t.Dict[SessionId, SessionRecord[T]] = {}
        self._lock = Lock()
        self.clock = clock

    async def persist(self, record: SessionRecord[T]) -> None:
        with self._lock:
            self._records[record.id] = record

    async def load(self, session_id: SessionId) -> t.Optional[SessionRecord[T]]:
        with self._lock:
            return self._records.get(session_id)

    async def remove(self, session_id: SessionId) -> t.Optional[SessionRecord[T]]:
        with self._lock:
            return self._records.pop(session_id, None)

    async def sweep(self, deadline: int) -> int:
        with self._lock:
            expired = [key for key, record in self._records.items() if record.created_at < deadline]
            for key in expired:
                del self._records[key]

        if expired:
            logger.info("expired_sessions_swept", count=len(expired), deadline=deadline)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
