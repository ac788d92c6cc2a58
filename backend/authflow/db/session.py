from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def create_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    # Handle different database URL formats
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    options: Dict[str, Any] = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options["pool_recycle"] = 300
    options.update(kwargs)
    return create_async_engine(database_url, **options)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)


async def create_tables(engine: AsyncEngine) -> None:
    """Create the session tables if they do not exist yet."""
    from ..stores import sql  # noqa: F401  registers the mapped tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
