"""Session helpers shared by routers and services.

Services flush and never commit; routers own the transaction boundary.
"""

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


async def commit_async(session: AsyncSession) -> None:
    await session.commit()


async def rollback_async(session: AsyncSession) -> None:
    if session.in_transaction():
        await session.rollback()


async def flush_async(session: AsyncSession, *objects: Any) -> None:
    await session.flush(list(objects) or None)


async def insert_in_savepoint(session: AsyncSession, *objects: Any) -> bool:
    """Add and flush ``objects`` inside a SAVEPOINT.

    Returns False when a unique constraint rejected the rows; the outer
    transaction stays usable and the rejected objects are discarded.
    """
    try:
        async with session.begin_nested():
            session.add_all(objects)
            await session.flush()
    except IntegrityError:
        return False
    return True
