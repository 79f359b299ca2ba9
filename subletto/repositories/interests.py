"""Interest repository helpers."""
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.interest import Interest


async def get(session: AsyncSession, *, user_id: str, listing_id: str) -> Interest | None:
    stmt = select(Interest).where(Interest.user_id == user_id, Interest.listing_id == listing_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create(session: AsyncSession, *, user_id: str, listing_id: str, now: datetime) -> Interest:
    """Lookup an interest or create one if it does not yet exist.

    A concurrent insert of the same pair is absorbed: the savepoint rolls back
    and the row the other writer stored is returned.
    """

    interest = await get(session, user_id=user_id, listing_id=listing_id)
    if interest is not None:
        return interest

    interest = Interest(id=str(uuid4()), user_id=user_id, listing_id=listing_id, created_at=now)
    nested_transaction = await session.begin_nested()
    session.add(interest)
    try:
        await session.flush()
    except IntegrityError:
        await nested_transaction.rollback()
        existing = await get(session, user_id=user_id, listing_id=listing_id)
        if existing is None:
            raise
        return existing
    await nested_transaction.commit()
    return interest


async def remove(session: AsyncSession, *, user_id: str, listing_id: str) -> bool:
    stmt = delete(Interest).where(Interest.user_id == user_id, Interest.listing_id == listing_id)
    result = await session.execute(stmt)
    return result.rowcount > 0


async def list_for_listing(session: AsyncSession, listing_id: str) -> list[Interest]:
    stmt = select(Interest).where(Interest.listing_id == listing_id).order_by(Interest.created_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_listing_ids_for_user(session: AsyncSession, user_id: str) -> list[str]:
    stmt = select(Interest.listing_id).where(Interest.user_id == user_id).order_by(Interest.created_at.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
