"""Room slot persistence helpers.

Status changes are guarded conditional updates: each one only matches a row
still in the expected source status, so concurrent writers resolve to exactly
one winner and the caller learns the outcome from the affected row count.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Iterable
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.slot import RoomSlot, SlotStatus


async def create_slots(
    session: AsyncSession,
    *,
    listing_id: str,
    total_slots: int,
    now: datetime,
) -> list[RoomSlot]:
    """Insert slots numbered 1..total_slots, all available."""

    slots = [
        RoomSlot(
            id=str(uuid4()),
            listing_id=listing_id,
            slot_number=number,
            status=SlotStatus.AVAILABLE,
            created_at=now,
            updated_at=now,
        )
        for number in range(1, total_slots + 1)
    ]
    session.add_all(slots)
    await session.flush()
    return slots


async def get_by_id(session: AsyncSession, slot_id: str) -> RoomSlot | None:
    stmt = select(RoomSlot).where(RoomSlot.id == slot_id).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_for_listing(session: AsyncSession, listing_id: str) -> list[RoomSlot]:
    """Return the listing's slots ordered by slot number."""

    stmt = (
        select(RoomSlot)
        .where(RoomSlot.listing_id == listing_id)
        .order_by(RoomSlot.slot_number.asc())
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_available(session: AsyncSession, listing_id: str) -> list[RoomSlot]:
    stmt = (
        select(RoomSlot)
        .where(RoomSlot.listing_id == listing_id, RoomSlot.status == SlotStatus.AVAILABLE)
        .order_by(RoomSlot.slot_number.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_by_status(
    session: AsyncSession, listing_ids: Iterable[str]
) -> dict[str, dict[SlotStatus, int]]:
    """Return per-listing slot counts keyed by status."""

    ids = list(dict.fromkeys(listing_ids))
    counts: dict[str, dict[SlotStatus, int]] = defaultdict(lambda: {status: 0 for status in SlotStatus})
    if not ids:
        return {}

    stmt = (
        select(RoomSlot.listing_id, RoomSlot.status, func.count(RoomSlot.id))
        .where(RoomSlot.listing_id.in_(ids))
        .group_by(RoomSlot.listing_id, RoomSlot.status)
    )
    for listing_id, status, count in (await session.execute(stmt)).all():
        counts[listing_id][SlotStatus(status)] = int(count)
    return dict(counts)


async def try_lock(
    session: AsyncSession,
    *,
    slot_id: str,
    user_id: str,
    locked_until: datetime,
    now: datetime,
) -> bool:
    """Move an available slot to locked. Returns False if it was not available."""

    stmt = (
        update(RoomSlot)
        .where(RoomSlot.id == slot_id, RoomSlot.status == SlotStatus.AVAILABLE)
        .values(
            status=SlotStatus.LOCKED,
            locked_by_user_id=user_id,
            locked_until=locked_until,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def release(session: AsyncSession, *, slot_id: str, user_id: str, now: datetime) -> bool:
    """Return a slot locked by ``user_id`` to the pool."""

    stmt = (
        update(RoomSlot)
        .where(
            RoomSlot.id == slot_id,
            RoomSlot.status == SlotStatus.LOCKED,
            RoomSlot.locked_by_user_id == user_id,
        )
        .values(status=SlotStatus.AVAILABLE, locked_by_user_id=None, locked_until=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def fill(session: AsyncSession, *, slot_id: str, user_id: str, now: datetime) -> bool:
    """Mark a slot locked by ``user_id`` as permanently filled."""

    stmt = (
        update(RoomSlot)
        .where(
            RoomSlot.id == slot_id,
            RoomSlot.status == SlotStatus.LOCKED,
            RoomSlot.locked_by_user_id == user_id,
        )
        .values(status=SlotStatus.FILLED, locked_until=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1
