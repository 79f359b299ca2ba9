"""Read-only booking endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import get_user_id
from ..db.session import get_session
from ..schemas import reservations as schemas
from ..services import checkout as checkout_service

router = APIRouter()


@router.get("", response_model=list[schemas.BookingOut])
async def my_bookings(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> list[schemas.BookingOut]:
    """Bookings the caller made as a renter."""

    bookings = await checkout_service.list_user_bookings(session, user_id=user_id)
    return [schemas.BookingOut.model_validate(booking) for booking in bookings]


@router.get("/hosting", response_model=list[schemas.BookingOut])
async def hosting_bookings(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> list[schemas.BookingOut]:
    """Bookings made on the caller's listings."""

    bookings = await checkout_service.list_host_bookings(session, host_id=user_id)
    return [schemas.BookingOut.model_validate(booking) for booking in bookings]


@router.get("/{booking_id}", response_model=schemas.BookingOut)
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.BookingOut:
    booking = await checkout_service.get_booking(session, booking_id=booking_id, user_id=user_id)
    return schemas.BookingOut.model_validate(booking)
