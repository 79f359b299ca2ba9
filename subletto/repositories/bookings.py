"""Booking persistence helpers."""
from __future__ import annotations

from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus


async def insert(
    session: AsyncSession,
    *,
    listing_id: str,
    renter_id: str,
    host_id: str,
    slot_id: str,
    checkout_session_id: str,
    start_date: date,
    end_date: date | None,
    monthly_rent: int,
    now: datetime,
) -> Booking:
    """Persist the booking produced by a completed checkout."""

    booking = Booking(
        id=str(uuid4()),
        listing_id=listing_id,
        renter_id=renter_id,
        host_id=host_id,
        slot_id=slot_id,
        checkout_session_id=checkout_session_id,
        status=BookingStatus.PENDING_CONFIRMATION,
        start_date=start_date,
        end_date=end_date,
        monthly_rent=monthly_rent,
        created_at=now,
    )
    session.add(booking)
    await session.flush()
    return booking


async def get_by_id(session: AsyncSession, booking_id: str) -> Booking | None:
    return await session.get(Booking, booking_id)


async def list_for_renter(session: AsyncSession, renter_id: str) -> list[Booking]:
    stmt = select(Booking).where(Booking.renter_id == renter_id).order_by(Booking.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_for_host(session: AsyncSession, host_id: str) -> list[Booking]:
    stmt = select(Booking).where(Booking.host_id == host_id).order_by(Booking.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
