"""Data access helpers for listings."""
from __future__ import annotations

from typing import Iterable, Mapping
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.listing import Listing


async def get_by_id(session: AsyncSession, listing_id: str) -> Listing | None:
    """Return a listing by identifier."""

    stmt = select(Listing).where(Listing.id == listing_id).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_by_ids(session: AsyncSession, listing_ids: Iterable[str]) -> list[Listing]:
    ids = list(dict.fromkeys(listing_ids))
    if not ids:
        return []
    result = await session.execute(select(Listing).where(Listing.id.in_(ids)))
    return list(result.scalars().all())


async def create_listing(
    session: AsyncSession,
    *,
    owner_id: str,
    values: Mapping[str, object],
    listing_id: str | None = None,
) -> Listing:
    """Persist a listing row; slots are created separately in the same transaction."""

    listing = Listing(id=listing_id or str(uuid4()), user_id=owner_id, **dict(values))
    session.add(listing)
    await session.flush()
    return listing
