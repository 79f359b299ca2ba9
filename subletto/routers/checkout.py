"""Checkout session endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import room
from ..core.auth import get_user_id
from ..core.config import settings
from ..db.session import get_session
from ..models.checkout_session import CheckoutSession
from ..schemas import reservations as schemas
from ..services import checkout as checkout_service

router = APIRouter()


def _session_out(checkout: CheckoutSession) -> schemas.CheckoutSessionOut:
    out = schemas.CheckoutSessionOut.model_validate(checkout)
    remaining = room.time_remaining(checkout.expires_at, warning_seconds=settings.checkout_warning_seconds)
    out.countdown = schemas.CountdownOut(
        minutes=remaining.minutes,
        seconds=remaining.seconds,
        total_seconds=remaining.total_seconds,
        is_expired=remaining.is_expired,
        is_warning=remaining.is_warning,
    )
    return out


@router.post("", response_model=schemas.CheckoutSessionOut, status_code=status.HTTP_201_CREATED)
async def start_checkout(
    payload: schemas.CheckoutStartRequest,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.CheckoutSessionOut:
    """Open a checkout window on a spot in the listing."""

    checkout = await checkout_service.start_checkout(session, listing_id=payload.listing_id, user_id=user_id)
    return _session_out(checkout)


@router.get("/active", response_model=schemas.CheckoutSessionOut | None)
async def active_checkout(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.CheckoutSessionOut | None:
    checkout = await checkout_service.get_active_session(session, user_id=user_id)
    return _session_out(checkout) if checkout is not None else None


@router.get("/{session_id}", response_model=schemas.CheckoutSessionOut)
async def get_checkout(
    session_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.CheckoutSessionOut:
    checkout = await checkout_service.get_checkout_session(session, session_id=session_id, user_id=user_id)
    return _session_out(checkout)


@router.post("/{session_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_checkout(
    session_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await checkout_service.cancel_checkout(session, session_id=session_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/complete", response_model=schemas.BookingOut, status_code=status.HTTP_201_CREATED)
async def complete_checkout(
    session_id: str,
    payload: schemas.CheckoutCompleteRequest,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.BookingOut:
    """Turn the checkout into a booking."""

    booking = await checkout_service.complete_checkout(
        session,
        session_id=session_id,
        user_id=user_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    return schemas.BookingOut.model_validate(booking)
