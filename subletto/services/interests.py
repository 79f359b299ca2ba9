"""Listing interest (bookmark) operations."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.interest import Interest
from ..repositories import interests as interests_repo
from ..repositories import listings as listings_repo
from . import errors


async def add_interest(
    session: AsyncSession,
    *,
    listing_id: str,
    user_id: str,
    now: datetime | None = None,
) -> Interest:
    """Mark a listing as interesting to the user. Repeat calls return the same row."""

    now = now or datetime.now(timezone.utc)
    async with session.begin():
        listing = await listings_repo.get_by_id(session, listing_id)
        if listing is None:
            raise errors.NotFound("Listing not found.")
        if listing.user_id == user_id:
            raise errors.OwnListing("You can't follow your own listing.")
        return await interests_repo.get_or_create(session, user_id=user_id, listing_id=listing_id, now=now)


async def remove_interest(session: AsyncSession, *, listing_id: str, user_id: str) -> bool:
    async with session.begin():
        return await interests_repo.remove(session, user_id=user_id, listing_id=listing_id)


async def list_interested_users(session: AsyncSession, *, listing_id: str) -> list[str]:
    async with session.begin():
        if await listings_repo.get_by_id(session, listing_id) is None:
            raise errors.NotFound("Listing not found.")
        interests = await interests_repo.list_for_listing(session, listing_id)
    return [interest.user_id for interest in interests]


async def list_user_interests(session: AsyncSession, *, user_id: str) -> list[str]:
    async with session.begin():
        return await interests_repo.list_listing_ids_for_user(session, user_id)


async def has_interest(session: AsyncSession, *, listing_id: str, user_id: str) -> bool:
    async with session.begin():
        return await interests_repo.get(session, user_id=user_id, listing_id=listing_id) is not None
