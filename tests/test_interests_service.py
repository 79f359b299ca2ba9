"""Tests for following listings."""
from __future__ import annotations

from datetime import timedelta

import pytest

from subletto.repositories import interests as interests_repo
from subletto.services import errors
from subletto.services import interests as interests_service


@pytest.mark.asyncio
async def test_add_interest_is_idempotent(session, make_listing, now):
    listing, _ = await make_listing(2)

    first = await interests_service.add_interest(session, listing_id=listing.id, user_id="renter-a", now=now)
    again = await interests_service.add_interest(session, listing_id=listing.id, user_id="renter-a", now=now)

    assert again.id == first.id
    assert await interests_service.list_interested_users(session, listing_id=listing.id) == ["renter-a"]
    assert await interests_service.has_interest(session, listing_id=listing.id, user_id="renter-a") is True


@pytest.mark.asyncio
async def test_concurrent_insert_returns_stored_row(session, make_listing, monkeypatch, now):
    listing, _ = await make_listing(2)
    first = await interests_service.add_interest(session, listing_id=listing.id, user_id="renter-a", now=now)
    first_id = first.id

    real_get = interests_repo.get
    calls = []

    async def stale_get(session, *, user_id, listing_id):
        # The first lookup misses, as if another writer inserted right after it.
        calls.append(listing_id)
        if len(calls) == 1:
            return None
        return await real_get(session, user_id=user_id, listing_id=listing_id)

    monkeypatch.setattr(interests_repo, "get", stale_get)

    again = await interests_service.add_interest(session, listing_id=listing.id, user_id="renter-a", now=now)

    assert again.id == first_id
    assert len(calls) == 2
    monkeypatch.undo()
    assert await interests_service.list_interested_users(session, listing_id=listing.id) == ["renter-a"]


@pytest.mark.asyncio
async def test_user_interests_and_removal(session, make_listing, now):
    first, _ = await make_listing(2)
    second, _ = await make_listing(2, owner_id="host-2")
    await interests_service.add_interest(session, listing_id=first.id, user_id="renter-a", now=now)
    await interests_service.add_interest(
        session, listing_id=second.id, user_id="renter-a", now=now + timedelta(minutes=1)
    )

    assert await interests_service.list_user_interests(session, user_id="renter-a") == [first.id, second.id]

    assert await interests_service.remove_interest(session, listing_id=first.id, user_id="renter-a") is True
    assert await interests_service.remove_interest(session, listing_id=first.id, user_id="renter-a") is False
    assert await interests_service.list_user_interests(session, user_id="renter-a") == [second.id]
    assert await interests_service.has_interest(session, listing_id=first.id, user_id="renter-a") is False


@pytest.mark.asyncio
async def test_host_cannot_follow_own_listing(session, make_listing, now):
    listing, _ = await make_listing(2)

    with pytest.raises(errors.OwnListing):
        await interests_service.add_interest(session, listing_id=listing.id, user_id="host-1", now=now)
