"""Abstract base class and record type for session stores."""

from __future__ import annotations

import typing as t
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..core.session_id import SessionId
from ..utils.clock import Clock, utc_now_secs

T = t.TypeVar("T")


@dataclass(frozen=True, slots=True)
class SessionRecord(t.Generic[T]):
    """Envelope of a stored session; ``created_at`` alone drives expiry."""

    id: SessionId
    created_at: int
    state: T


class SessionStore(ABC, t.Generic[T]):
    """Pluggable storage for session records.

    Implementations must make :meth:`remove` an atomic take: once it has
    returned a record, neither a concurrent :meth:`load` nor a second
    :meth:`remove` for the same id may observe it. The login flow relies on
    this to consume CSRF state at most once.

    Expected failures (unknown id, bad cookie) return ``None``; I/O failures
    raise :class:`~authflow.core.errors.StoreError`.
    """

    clock: Clock = staticmethod(utc_now_secs)

    def wants_maintenance_task(self) -> bool:
        """Whether an owning context should run periodic :meth:`sweep` calls."""
        return True

    async def create(self, state: T) -> SessionId:
        """Allocate an id, persist ``state`` under it and return the id."""
        record = SessionRecord(id=SessionId.generate(), created_at=self.clock(), state=state)
        await self.persist(record)
        return record.id

    @abstractmethod
    async def persist(self, record: SessionRecord[T]) -> None:
        """Store a fully built record."""

    @abstractmethod
    async def load(self, session_id: SessionId) -> t.Optional[SessionRecord[T]]:
        """Read a record without consuming it."""

    @abstractmethod
    async def remove(self, session_id: SessionId) -> t.Optional[SessionRecord[T]]:
        """Atomically delete a record and hand it to at most one caller."""

    @abstractmethod
    async def sweep(self, deadline: int) -> int:
        """Delete every record with ``created_at < deadline``; return how many."""
