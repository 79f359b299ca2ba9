"""Slot store: listings and the room slots that back them."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.listing import Listing
from ..models.slot import RoomSlot
from ..repositories import listings as listings_repo
from ..repositories import slots as slots_repo
from ..schemas import listings as schemas
from . import errors
from .checkout import sweep_expired
from .events import ListingEventHub, hub

logger = logging.getLogger(__name__)


async def create_listing(
    payload: schemas.ListingCreate,
    session: AsyncSession,
    *,
    owner_id: str,
    now: datetime | None = None,
) -> tuple[Listing, list[RoomSlot]]:
    """Create a listing together with its slots, numbered from 1."""

    now = now or datetime.now(timezone.utc)
    values = payload.model_dump(exclude={"total_slots"})
    total_slots = payload.total_slots or payload.bedrooms or 1

    async with session.begin():
        listing = await listings_repo.create_listing(
            session,
            owner_id=owner_id,
            values={**values, "total_slots": total_slots, "created_at": now},
        )
        slots = await create_slots_for_listing(session, listing_id=listing.id, total_slots=total_slots, now=now)

    logger.info("Listing %s created by %s with %d slot(s)", listing.id, owner_id, total_slots)
    return listing, slots


async def create_slots_for_listing(
    session: AsyncSession,
    *,
    listing_id: str,
    total_slots: int,
    now: datetime,
) -> list[RoomSlot]:
    """Insert the slots for a listing inside the caller's transaction."""

    if total_slots < 1:
        raise errors.InvalidRequest("A listing needs at least one spot.")
    return await slots_repo.create_slots(session, listing_id=listing_id, total_slots=total_slots, now=now)


async def get_listing(session: AsyncSession, *, listing_id: str) -> Listing:
    async with session.begin():
        listing = await listings_repo.get_by_id(session, listing_id)
    if listing is None:
        raise errors.NotFound("Listing not found.")
    return listing


async def list_slots(
    session: AsyncSession,
    *,
    listing_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> list[RoomSlot]:
    await sweep_expired(session, now=now, events=events)
    async with session.begin():
        if await listings_repo.get_by_id(session, listing_id) is None:
            raise errors.NotFound("Listing not found.")
        return await slots_repo.list_for_listing(session, listing_id)
