"""Relational session store on SQLAlchemy's asyncio extension."""

from __future__ import annotations

import typing as t

from pydantic import TypeAdapter
from sqlalchemy import JSON, BigInteger, String, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from ..core.errors import StoreError
from ..core.logging import get_logger
from ..core.session_id import SessionId
from ..db.session import Base, create_sessionmaker
from ..utils.clock import Clock, utc_now_secs
from .base import SessionRecord, SessionStore, T

logger = get_logger(__name__)


class SessionRow(Base):
    __tablename__ = "auth_sessions"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[int] = mapped_column(BigInteger, index=True)
    state: Mapped[t.Any] = mapped_column(JSON)


class SqlSessionStore(SessionStore[T]):
    """Session records in a relational table, one namespace per context.

    ``remove`` is a single ``DELETE ... RETURNING`` so the database decides
    which concurrent caller receives the row. State is stored as JSON through
    a pydantic ``TypeAdapter`` for ``state_type``.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        state_type: t.Type[T],
        namespace: str = "default",
        clock: Clock = utc_now_secs,
    ) -> None:
        self._sessionmaker: async_sessionmaker[AsyncSession] = create_sessionmaker(engine)
        self._adapter: TypeAdapter[T] = TypeAdapter(state_type)
        self.namespace = namespace
        self.clock = clock

    def _dump(self, state: T) -> t.Any:
        return self._adapter.dump_python(state, mode="json", context={"reveal_secrets": True})

    def _to_record(self, session_id: str, created_at: int, state: t.Any) -> SessionRecord[T]:
        return SessionRecord(
            id=SessionId(session_id),
            created_at=created_at,
            state=self._adapter.validate_python(state),
        )

    async def persist(self, record: SessionRecord[T]) -> None:
        try:
            async with self._sessionmaker() as session:
                session.add(
                    SessionRow(
                        namespace=self.namespace,
                        id=str(record.id),
                        created_at=record.created_at,
                        state=self._dump(record.state),
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("session_persist_failed", namespace=self.namespace, error=str(e))
            raise StoreError("failed to persist session") from e

    async def load(self, session_id: SessionId) -> t.Optional[SessionRecord[T]]:
        stmt = select(SessionRow).where(
            SessionRow.namespace == self.namespace,
            SessionRow.id == str(session_id),
        )
        try:
            async with self._sessionmaker() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("session_load_failed", namespace=self.namespace, error=str(e))
            raise StoreError("failed to load session") from e

        if row is None:
            return None
        return self._to_record(row.id, row.created_at, row.state)

    async def remove(self, session_id: SessionId) -> t.Optional[SessionRecord[T]]:
        stmt = (
            delete(SessionRow)
            .where(SessionRow.namespace == self.namespace, SessionRow.id == str(session_id))
            .returning(SessionRow.created_at, SessionRow.state)
        )
        try:
            async with self._sessionmaker() as session:
                row = (await session.execute(stmt)).first()
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("session_remove_failed", namespace=self.namespace, error=str(e))
            raise StoreError("failed to remove session") from e

        if row is None:
            return None
        return self._to_record(str(session_id), row.created_at, row.state)

    async def sweep(self, deadline: int) -> int:
        stmt = delete(SessionRow).where(
            SessionRow.namespace == self.namespace,
            SessionRow.created_at < deadline,
        )
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("session_sweep_failed", namespace=self.namespace, error=str(e))
            raise StoreError("failed to sweep sessions") from e

        removed = result.rowcount or 0
        if removed:
            logger.info("expired_sessions_swept", namespace=self.namespace, count=removed, deadline=deadline)
        return removed
