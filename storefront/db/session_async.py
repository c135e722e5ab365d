"""Async SQLAlchemy session utilities."""

from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from storefront.core.config import settings

_IS_SQLITE = settings.ASYNC_DATABASE_URL.startswith("sqlite")

engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
if _IS_SQLITE:
    # Connections are bound to the event loop that opened them.
    engine_kwargs = {
        "poolclass": NullPool,
        "connect_args": {"timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS},
    }

async_engine: AsyncEngine = create_async_engine(settings.ASYNC_DATABASE_URL, **engine_kwargs)

if _IS_SQLITE:

    @event.listens_for(async_engine.sync_engine, "connect")
    def _sqlite_disable_implicit_begin(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _sqlite_begin_immediate(conn) -> None:
        # Writers take the lock up front so concurrent requests serialize
        # instead of failing with a SHARED -> RESERVED upgrade deadlock.
        conn.exec_driver_sql("BEGIN IMMEDIATE")


AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an AsyncSession."""
    async with AsyncSessionLocal() as session:
        yield session

