"""Listing availability projector.

Derives slot counts and a listing-level status from the slot rows. Reads sweep
lapsed sessions and holds first so a stale hold is never reported as locked.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.listing import Listing
from ..models.slot import SlotStatus
from ..repositories import checkout_sessions as sessions_repo
from ..repositories import commitments as commitments_repo
from ..repositories import listings as listings_repo
from ..repositories import slots as slots_repo
from . import errors
from .checkout import sweep_expired
from .events import ListingEventHub, hub


class ListingStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    IN_CHECKOUT = "IN_CHECKOUT"
    BOOKED = "BOOKED"


@dataclass(slots=True, frozen=True)
class SlotCounts:
    total: int
    available: int
    locked: int
    filled: int


@dataclass(slots=True, frozen=True)
class BookingEligibility:
    can_book: bool
    reason: str | None = None


@dataclass(slots=True, frozen=True)
class SlotSummary:
    filled: int
    total: int


def derive_counts(total: int, by_status: dict[SlotStatus, int] | None) -> SlotCounts:
    """Build counts with ``available`` derived as the remainder of ``total``."""

    by_status = by_status or {}
    locked = by_status.get(SlotStatus.LOCKED, 0)
    filled = by_status.get(SlotStatus.FILLED, 0)
    return SlotCounts(total=total, available=max(total - locked - filled, 0), locked=locked, filled=filled)


def derive_listing_status(counts: SlotCounts) -> ListingStatus:
    if counts.available > 0:
        return ListingStatus.AVAILABLE
    if counts.locked > 0:
        return ListingStatus.IN_CHECKOUT
    return ListingStatus.BOOKED


async def get_slot_counts(
    session: AsyncSession,
    *,
    listing_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> SlotCounts:
    await sweep_expired(session, now=now, events=events)
    async with session.begin():
        listing = await _require_listing(session, listing_id)
        counts = await slots_repo.count_by_status(session, [listing_id])
    return derive_counts(listing.total_slots, counts.get(listing_id))


async def get_listing_status(
    session: AsyncSession,
    *,
    listing_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> ListingStatus:
    counts = await get_slot_counts(session, listing_id=listing_id, now=now, events=events)
    return derive_listing_status(counts)


async def can_book_listing(
    session: AsyncSession,
    *,
    listing_id: str,
    user_id: str | None,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> BookingEligibility:
    """Tell a prospective renter whether checkout on this listing would be accepted.

    Never raises for business reasons; the first blocking reason is returned.
    """

    if not user_id:
        return BookingEligibility(False, errors.AuthenticationRequired.message.rstrip("."))

    await sweep_expired(session, now=now, events=events)
    async with session.begin():
        listing = await listings_repo.get_by_id(session, listing_id)
        if listing is None:
            return BookingEligibility(False, "Listing not found")
        if not listing.is_active:
            return BookingEligibility(False, "Listing is not active")
        if listing.user_id == user_id:
            return BookingEligibility(False, "You can't book your own listing")

        if await sessions_repo.get_active_for_user(session, user_id) is not None:
            return BookingEligibility(False, errors.AlreadyInCheckout.message)

        held = await commitments_repo.get_active_for_user(session, user_id)
        if held is not None:
            if held.listing_id == listing.id:
                # Their own hold here converts into a checkout.
                return BookingEligibility(True)
            return BookingEligibility(False, "You can only have one active commitment at a time")

        counts = await slots_repo.count_by_status(session, [listing_id])

    status = derive_listing_status(derive_counts(listing.total_slots, counts.get(listing_id)))
    if status is ListingStatus.BOOKED:
        return BookingEligibility(False, "This room has already been booked")
    if status is ListingStatus.IN_CHECKOUT:
        return BookingEligibility(False, "Someone else is currently booking this room")
    return BookingEligibility(True)


async def get_slot_summaries(
    session: AsyncSession,
    *,
    listing_ids: Iterable[str],
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> dict[str, SlotSummary]:
    """Per-listing ``filled/total`` for feed cards; held spots count as taken.

    Unknown ids are left out of the result.
    """

    ids = list(dict.fromkeys(listing_ids))
    if not ids:
        return {}

    await sweep_expired(session, now=now, events=events)
    async with session.begin():
        listings = await listings_repo.list_by_ids(session, ids)
        counts = await slots_repo.count_by_status(session, ids)

    summaries: dict[str, SlotSummary] = {}
    for listing in listings:
        derived = derive_counts(listing.total_slots, counts.get(listing.id))
        summaries[listing.id] = SlotSummary(filled=derived.locked + derived.filled, total=derived.total)
    return summaries


async def _require_listing(session: AsyncSession, listing_id: str) -> Listing:
    listing = await listings_repo.get_by_id(session, listing_id)
    if listing is None:
        raise errors.NotFound("Listing not found.")
    return listing
