"""Listing, slot and availability endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import room
from ..core.auth import get_optional_user_id, get_user_id
from ..db.session import get_session
from ..schemas import listings as listings_schema
from ..schemas import reservations as reservations_schema
from ..services import availability as availability_service
from ..services import interests as interests_service
from ..services import locks as locks_service
from ..services import slots as slots_service

router = APIRouter()


@router.post("", response_model=listings_schema.ListingWithSlots, status_code=status.HTTP_201_CREATED)
async def create_listing(
    payload: listings_schema.ListingCreate,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> listings_schema.ListingWithSlots:
    """Post a listing; its spots are created alongside it."""

    listing, slots = await slots_service.create_listing(payload, session, owner_id=user_id)
    out = listings_schema.ListingOut.model_validate(listing)
    return listings_schema.ListingWithSlots(
        **out.model_dump(),
        slots=[listings_schema.SlotOut.model_validate(slot) for slot in slots],
    )


@router.get("/summaries", response_model=dict[str, listings_schema.SlotSummaryOut])
async def slot_summaries(
    ids: str = Query(default="", description="Comma-separated listing ids"),
    session: AsyncSession = Depends(get_session),
) -> dict[str, listings_schema.SlotSummaryOut]:
    """Return ``filled/total`` per listing for feed cards."""

    listing_ids = [value.strip() for value in ids.split(",") if value.strip()]
    summaries = await availability_service.get_slot_summaries(session, listing_ids=listing_ids)
    return {
        listing_id: listings_schema.SlotSummaryOut(filled=summary.filled, total=summary.total)
        for listing_id, summary in summaries.items()
    }


@router.get("/interests", response_model=reservations_schema.UserInterestsOut)
async def my_interests(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> reservations_schema.UserInterestsOut:
    """Return the listings the caller follows, oldest first."""

    listing_ids = await interests_service.list_user_interests(session, user_id=user_id)
    return reservations_schema.UserInterestsOut(listing_ids=listing_ids)


@router.get("/{listing_id}", response_model=listings_schema.ListingOut)
async def get_listing(
    listing_id: str,
    session: AsyncSession = Depends(get_session),
) -> listings_schema.ListingOut:
    listing = await slots_service.get_listing(session, listing_id=listing_id)
    return listings_schema.ListingOut.model_validate(listing)


@router.get("/{listing_id}/slots", response_model=list[listings_schema.SlotOut])
async def list_slots(
    listing_id: str,
    session: AsyncSession = Depends(get_session),
) -> list[listings_schema.SlotOut]:
    slots = await slots_service.list_slots(session, listing_id=listing_id)
    return [listings_schema.SlotOut.model_validate(slot) for slot in slots]


@router.get("/{listing_id}/availability", response_model=listings_schema.AvailabilityOut)
async def availability(
    listing_id: str,
    session: AsyncSession = Depends(get_session),
) -> listings_schema.AvailabilityOut:
    """Return slot counts, derived status and display labels."""

    counts = await availability_service.get_slot_counts(session, listing_id=listing_id)
    taken = counts.locked + counts.filled
    return listings_schema.AvailabilityOut(
        listing_id=listing_id,
        total=counts.total,
        available=counts.available,
        locked=counts.locked,
        filled=counts.filled,
        status=availability_service.derive_listing_status(counts).value,
        progress=room.format_progress(taken, counts.total),
        spots_left=room.format_spots_left(taken, counts.total),
        spots_left_full=room.format_spots_left_full(taken, counts.total),
    )


@router.get("/{listing_id}/can-book", response_model=listings_schema.CanBookOut)
async def can_book(
    listing_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    session: AsyncSession = Depends(get_session),
) -> listings_schema.CanBookOut:
    eligibility = await availability_service.can_book_listing(session, listing_id=listing_id, user_id=user_id)
    return listings_schema.CanBookOut(can_book=eligibility.can_book, reason=eligibility.reason)


@router.get("/{listing_id}/commitments", response_model=list[reservations_schema.CommitmentOut])
async def listing_commitments(
    listing_id: str,
    active_only: bool = False,
    session: AsyncSession = Depends(get_session),
) -> list[reservations_schema.CommitmentOut]:
    commitments = await locks_service.list_commitments_for_listing(
        session, listing_id=listing_id, active_only=active_only
    )
    return [reservations_schema.CommitmentOut.model_validate(commitment) for commitment in commitments]


@router.post("/{listing_id}/interest", response_model=reservations_schema.InterestOut)
async def add_interest(
    listing_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> reservations_schema.InterestOut:
    await interests_service.add_interest(session, listing_id=listing_id, user_id=user_id)
    return reservations_schema.InterestOut(listing_id=listing_id, interested=True)


@router.delete("/{listing_id}/interest", response_model=reservations_schema.InterestOut)
async def remove_interest(
    listing_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> reservations_schema.InterestOut:
    await interests_service.remove_interest(session, listing_id=listing_id, user_id=user_id)
    return reservations_schema.InterestOut(listing_id=listing_id, interested=False)


@router.get("/{listing_id}/interest", response_model=reservations_schema.InterestedUsersOut)
async def interested_users(
    listing_id: str,
    session: AsyncSession = Depends(get_session),
) -> reservations_schema.InterestedUsersOut:
    """Return the users who follow this listing."""

    user_ids = await interests_service.list_interested_users(session, listing_id=listing_id)
    return reservations_schema.InterestedUsersOut(listing_id=listing_id, user_ids=user_ids)


@router.get("/{listing_id}/interest/me", response_model=reservations_schema.InterestOut)
async def my_interest(
    listing_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> reservations_schema.InterestOut:
    interested = await interests_service.has_interest(session, listing_id=listing_id, user_id=user_id)
    return reservations_schema.InterestOut(listing_id=listing_id, interested=interested)
