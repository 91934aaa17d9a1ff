from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from services.registry.app.settings import RegistrySettings


# (database, session) of the unit of work running in the current task, if any.
_CURRENT: ContextVar[tuple["Database", AsyncSession] | None] = ContextVar("registry_unit_of_work", default=None)


def now() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(ts: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything we write is UTC.
    if ts is None or ts.tzinfo is not None:
        return ts
    return ts.replace(tzinfo=UTC)


def create_engine(settings: RegistrySettings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=0,
        pool_recycle=settings.db_pool_idle_timeout_s,
        pool_timeout=settings.db_pool_connect_timeout_s,
        connect_args={"timeout": settings.db_pool_connect_timeout_s},
    )


class Database:
    """
    Explicitly constructed handle over the pooled engine, shared by every component.

    `unit_of_work()` opens one transaction; nested calls made while it is active (from the
    same task) join it instead of opening their own, so a multi-step operation such as an
    app transfer commits or rolls back as a whole.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def from_settings(cls, settings: RegistrySettings) -> Database:
        return cls(create_engine(settings))

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        current = _CURRENT.get()
        if current is not None and current[0] is self:
            yield current[1]
            return

        async with self._sessionmaker.begin() as session:
            token = _CURRENT.set((self, session))
            try:
                yield session
            finally:
                _CURRENT.reset(token)

    async def check_health(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(sa.text("SELECT 1"))

    async def close(self) -> None:
        await self.engine.dispose()
