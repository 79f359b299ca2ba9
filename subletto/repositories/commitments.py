"""Commitment persistence helpers."""
from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.commitment import Commitment, CommitmentStatus


async def insert(
    session: AsyncSession,
    *,
    user_id: str,
    listing_id: str,
    slot_id: str,
    locked_until: datetime,
    now: datetime,
    checklist_answers: dict[str, bool] | None = None,
) -> Commitment:
    """Persist an active commitment; unique indexes reject a second active row."""

    commitment = Commitment(
        id=str(uuid4()),
        user_id=user_id,
        listing_id=listing_id,
        slot_id=slot_id,
        status=CommitmentStatus.ACTIVE,
        locked_until=locked_until,
        checklist_answers=dict(checklist_answers or {}),
        created_at=now,
        updated_at=now,
    )
    session.add(commitment)
    await session.flush()
    return commitment


async def get_by_id(session: AsyncSession, commitment_id: str) -> Commitment | None:
    stmt = select(Commitment).where(Commitment.id == commitment_id).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_for_user(session: AsyncSession, user_id: str) -> Commitment | None:
    stmt = (
        select(Commitment)
        .where(Commitment.user_id == user_id, Commitment.status == CommitmentStatus.ACTIVE)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def list_for_listing(
    session: AsyncSession,
    listing_id: str,
    *,
    active_only: bool = False,
) -> list[Commitment]:
    stmt = select(Commitment).where(Commitment.listing_id == listing_id)
    if active_only:
        stmt = stmt.where(Commitment.status == CommitmentStatus.ACTIVE).order_by(Commitment.created_at.asc())
    else:
        stmt = stmt.order_by(Commitment.created_at.desc())
    result = await session.execute(stmt.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def list_due(session: AsyncSession, *, now: datetime) -> list[Commitment]:
    """Return active commitments whose hold has lapsed."""

    stmt = select(Commitment).where(
        Commitment.status == CommitmentStatus.ACTIVE,
        Commitment.locked_until < now,
    )
    result = await session.execute(stmt.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def transition(
    session: AsyncSession,
    *,
    commitment_id: str,
    to_status: CommitmentStatus,
    now: datetime,
) -> bool:
    """Move an active commitment to ``to_status``. False if it already left active."""

    stmt = (
        update(Commitment)
        .where(Commitment.id == commitment_id, Commitment.status == CommitmentStatus.ACTIVE)
        .values(status=to_status, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1
