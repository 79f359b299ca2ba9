"""Checkout session persistence helpers."""
from __future__ import annotations

from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.checkout_session import CheckoutSession, CheckoutState


async def insert(
    session: AsyncSession,
    *,
    listing_id: str,
    user_id: str,
    slot_id: str,
    commitment_id: str,
    expires_at: datetime,
    price_snapshot: int,
    move_in_date: date | None,
    lease_months: int | None,
    now: datetime,
) -> CheckoutSession:
    checkout = CheckoutSession(
        id=str(uuid4()),
        listing_id=listing_id,
        user_id=user_id,
        slot_id=slot_id,
        commitment_id=commitment_id,
        state=CheckoutState.ACTIVE,
        expires_at=expires_at,
        price_snapshot=price_snapshot,
        move_in_date=move_in_date,
        lease_months=lease_months,
        created_at=now,
        updated_at=now,
    )
    session.add(checkout)
    await session.flush()
    return checkout


async def get_by_id(session: AsyncSession, session_id: str) -> CheckoutSession | None:
    stmt = select(CheckoutSession).where(CheckoutSession.id == session_id).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_for_user(session: AsyncSession, user_id: str) -> CheckoutSession | None:
    stmt = (
        select(CheckoutSession)
        .where(CheckoutSession.user_id == user_id, CheckoutSession.state == CheckoutState.ACTIVE)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_active_for_listing(session: AsyncSession, listing_id: str) -> CheckoutSession | None:
    stmt = (
        select(CheckoutSession)
        .where(CheckoutSession.listing_id == listing_id, CheckoutSession.state == CheckoutState.ACTIVE)
        .order_by(CheckoutSession.created_at.asc())
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_active_for_commitment(session: AsyncSession, commitment_id: str) -> CheckoutSession | None:
    stmt = (
        select(CheckoutSession)
        .where(
            CheckoutSession.commitment_id == commitment_id,
            CheckoutSession.state == CheckoutState.ACTIVE,
        )
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def list_due(session: AsyncSession, *, now: datetime) -> list[CheckoutSession]:
    stmt = select(CheckoutSession).where(
        CheckoutSession.state == CheckoutState.ACTIVE,
        CheckoutSession.expires_at < now,
    )
    result = await session.execute(stmt.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def transition(
    session: AsyncSession,
    *,
    session_id: str,
    to_state: CheckoutState,
    now: datetime,
) -> bool:
    """Move an ACTIVE session to ``to_state``. False if it already left ACTIVE."""

    stmt = (
        update(CheckoutSession)
        .where(CheckoutSession.id == session_id, CheckoutSession.state == CheckoutState.ACTIVE)
        .values(state=to_state, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def complete(session: AsyncSession, *, session_id: str, now: datetime) -> bool:
    """Complete an ACTIVE session that has not yet reached its deadline."""

    stmt = (
        update(CheckoutSession)
        .where(
            CheckoutSession.id == session_id,
            CheckoutSession.state == CheckoutState.ACTIVE,
            CheckoutSession.expires_at >= now,
        )
        .values(state=CheckoutState.COMPLETED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1
