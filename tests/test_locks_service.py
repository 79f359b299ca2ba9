"""Tests for acquiring, cancelling and expiring spot holds."""
from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from subletto.models.checkout_session import CheckoutSession, CheckoutState
from subletto.models.commitment import Commitment, CommitmentStatus
from subletto.models.slot import RoomSlot, SlotStatus
from subletto.repositories import commitments as commitments_repo
from subletto.repositories import listings as listings_repo
from subletto.repositories import slots as slots_repo
from subletto.services import checkout as checkout_service
from subletto.services import errors
from subletto.services import locks as locks_service
from subletto.services.events import SESSION_CANCELLED, SLOT_LOCKED, SLOT_RELEASED


class DummySession:
    """Minimal session stub supporting async transaction context."""

    def begin(self):  # noqa: D401 - mimic SQLAlchemy's async begin
        session = self

        class _Tx:
            async def __aenter__(self_inner):
                return session

            async def __aexit__(self_inner, exc_type, exc, tb):
                return False

        return _Tx()


@pytest.mark.asyncio
async def test_acquire_lock_holds_slot_for_lock_duration(session, make_listing, events, fetch, now):
    listing, slots = await make_listing(4)

    commitment = await locks_service.acquire_lock(
        session, slot_id=slots[0].id, user_id="renter-a", checklist_answers={"no_smoking": True}, now=now, events=events
    )

    assert commitment.status is CommitmentStatus.ACTIVE
    assert commitment.locked_until == now + timedelta(hours=48)
    assert commitment.checklist_answers == {"no_smoking": True}

    slot = await fetch(RoomSlot, slots[0].id)
    assert slot.status is SlotStatus.LOCKED
    assert slot.locked_by_user_id == "renter-a"
    assert slot.locked_until == now + timedelta(hours=48)
    assert events.types() == [SLOT_LOCKED]
    assert events.published[0].listing_id == listing.id


@pytest.mark.asyncio
async def test_second_user_cannot_lock_held_slot(session, make_listing, events, fetch, now):
    _, slots = await make_listing(2)
    await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="renter-a", now=now, events=events)

    with pytest.raises(errors.SlotUnavailable) as exc:
        await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="renter-b", now=now, events=events)

    assert exc.value.status_code == 409
    slot = await fetch(RoomSlot, slots[0].id)
    assert slot.locked_by_user_id == "renter-a"


@pytest.mark.asyncio
async def test_user_limited_to_one_active_commitment(session, make_listing, events, fetch, now):
    _, first_slots = await make_listing(2)
    _, other_slots = await make_listing(2, owner_id="host-2")
    await locks_service.acquire_lock(session, slot_id=first_slots[0].id, user_id="renter-a", now=now, events=events)

    with pytest.raises(errors.UserHasActiveCommitment):
        await locks_service.acquire_lock(session, slot_id=other_slots[0].id, user_id="renter-a", now=now, events=events)

    untouched = await fetch(RoomSlot, other_slots[0].id)
    assert untouched.status is SlotStatus.AVAILABLE
    assert untouched.locked_by_user_id is None


@pytest.mark.asyncio
async def test_host_cannot_lock_own_listing(session, make_listing, events, now):
    _, slots = await make_listing(2, owner_id="host-1")

    with pytest.raises(errors.OwnListing):
        await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="host-1", now=now, events=events)


@pytest.mark.asyncio
async def test_missing_slot_is_not_found(session, events, now):
    with pytest.raises(errors.NotFound):
        await locks_service.acquire_lock(session, slot_id="nope", user_id="renter-a", now=now, events=events)


@pytest.mark.asyncio
async def test_cancel_lock_releases_slot(session, make_listing, events, fetch, now):
    _, slots = await make_listing(2)
    commitment = await locks_service.acquire_lock(
        session, slot_id=slots[1].id, user_id="renter-a", now=now, events=events
    )
    commitment_id = commitment.id

    with pytest.raises(errors.NotOwner):
        await locks_service.cancel_lock(session, commitment_id=commitment_id, user_id="renter-b", now=now, events=events)

    await locks_service.cancel_lock(session, commitment_id=commitment_id, user_id="renter-a", now=now, events=events)

    slot = await fetch(RoomSlot, slots[1].id)
    stored = await fetch(Commitment, commitment_id)
    assert slot.status is SlotStatus.AVAILABLE
    assert slot.locked_by_user_id is None
    assert stored.status is CommitmentStatus.CANCELLED
    assert events.types()[-1] == SLOT_RELEASED

    with pytest.raises(errors.NotActive):
        await locks_service.cancel_lock(session, commitment_id=commitment_id, user_id="renter-a", now=now, events=events)


@pytest.mark.asyncio
async def test_cancel_unknown_commitment(session, events, now):
    with pytest.raises(errors.NotFound):
        await locks_service.cancel_lock(session, commitment_id="missing", user_id="renter-a", now=now, events=events)


@pytest.mark.asyncio
async def test_expire_stale_locks_is_idempotent(session, make_listing, events, fetch, now):
    _, slots = await make_listing(2)
    commitment = await locks_service.acquire_lock(
        session, slot_id=slots[0].id, user_id="renter-a", now=now, events=events
    )

    later = now + timedelta(hours=49)
    assert await locks_service.expire_stale_locks(session, now=now + timedelta(hours=47), events=events) == 0
    assert await locks_service.expire_stale_locks(session, now=later, events=events) == 1
    assert await locks_service.expire_stale_locks(session, now=later, events=events) == 0

    stored = await fetch(Commitment, commitment.id)
    slot = await fetch(RoomSlot, slots[0].id)
    assert stored.status is CommitmentStatus.EXPIRED
    assert slot.status is SlotStatus.AVAILABLE
    assert events.published[-1].reason == "expired"


@pytest.mark.asyncio
async def test_expired_hold_is_swept_before_next_lock(session, make_listing, events, fetch, now):
    _, slots = await make_listing(1)
    first = await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="renter-a", now=now, events=events)

    later = now + timedelta(hours=48, minutes=1)
    second = await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="renter-b", now=later, events=events)

    assert (await fetch(Commitment, first.id)).status is CommitmentStatus.EXPIRED
    slot = await fetch(RoomSlot, slots[0].id)
    assert slot.locked_by_user_id == "renter-b"
    assert second.locked_until == later + timedelta(hours=48)


@pytest.mark.asyncio
async def test_cancelling_hold_cancels_checkout_riding_on_it(session, make_listing, events, fetch, now):
    listing, slots = await make_listing(2)
    commitment = await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="renter-a", now=now, events=events)
    checkout = await checkout_service.start_checkout(session, listing_id=listing.id, user_id="renter-a", now=now, events=events)

    await locks_service.cancel_lock(session, commitment_id=commitment.id, user_id="renter-a", now=now, events=events)

    stored = await fetch(CheckoutSession, checkout.id)
    assert stored.state is CheckoutState.CANCELLED
    assert SESSION_CANCELLED in events.types()


@pytest.mark.asyncio
async def test_active_commitment_lookup(session, make_listing, events, now):
    listing, slots = await make_listing(3)
    assert await locks_service.get_active_commitment(session, user_id="renter-a", now=now, events=events) is None

    commitment = await locks_service.acquire_lock(session, slot_id=slots[2].id, user_id="renter-a", now=now, events=events)
    found = await locks_service.get_active_commitment(session, user_id="renter-a", now=now, events=events)
    assert found.id == commitment.id

    listed = await locks_service.list_commitments_for_listing(
        session, listing_id=listing.id, active_only=True, now=now, events=events
    )
    assert [item.id for item in listed] == [commitment.id]


@pytest.mark.asyncio
async def test_lost_guarded_update_reports_slot_unavailable(monkeypatch, now, events):
    session = DummySession()
    listing = SimpleNamespace(id="listing-1", user_id="host-1", is_active=True)
    slot = SimpleNamespace(id="slot-1", listing_id="listing-1")

    monkeypatch.setattr(commitments_repo, "list_due", AsyncMock(return_value=[]))
    monkeypatch.setattr(slots_repo, "get_by_id", AsyncMock(return_value=slot))
    monkeypatch.setattr(listings_repo, "get_by_id", AsyncMock(return_value=listing))
    monkeypatch.setattr(commitments_repo, "get_active_for_user", AsyncMock(return_value=None))
    monkeypatch.setattr(slots_repo, "try_lock", AsyncMock(return_value=False))
    insert = AsyncMock()
    monkeypatch.setattr(commitments_repo, "insert", insert)

    with pytest.raises(errors.SlotUnavailable):
        await locks_service.acquire_lock(session, slot_id="slot-1", user_id="renter-a", now=now, events=events)

    insert.assert_not_awaited()
    assert events.published == []


@pytest.mark.asyncio
async def test_inactive_listing_rejects_lock(monkeypatch, now, events):
    session = DummySession()
    listing = SimpleNamespace(id="listing-1", user_id="host-1", is_active=False)

    monkeypatch.setattr(commitments_repo, "list_due", AsyncMock(return_value=[]))
    monkeypatch.setattr(slots_repo, "get_by_id", AsyncMock(return_value=SimpleNamespace(id="slot-1", listing_id="listing-1")))
    monkeypatch.setattr(listings_repo, "get_by_id", AsyncMock(return_value=listing))
    try_lock = AsyncMock(return_value=True)
    monkeypatch.setattr(slots_repo, "try_lock", try_lock)

    with pytest.raises(errors.ListingInactive):
        await locks_service.acquire_lock(session, slot_id="slot-1", user_id="renter-a", now=now, events=events)

    try_lock.assert_not_awaited()


class _Diag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class _DriverError(Exception):
    def __init__(self, message, constraint_name=None):
        super().__init__(message)
        if constraint_name is not None:
            self.diag = _Diag(constraint_name)


@pytest.mark.parametrize(
    "orig, expected",
    [
        (
            _DriverError(
                'duplicate key value violates unique constraint "uq_commitments_active_user"\n'
                "DETAIL:  Key (user_id)=(slot-hunter) already exists."
            ),
            errors.UserHasActiveCommitment,
        ),
        (
            _DriverError(
                'duplicate key value violates unique constraint "uq_commitments_active_slot"\n'
                "DETAIL:  Key (slot_id)=(slot-9) already exists."
            ),
            errors.SlotUnavailable,
        ),
        (_DriverError("UNIQUE constraint failed: commitments.slot_id"), errors.SlotUnavailable),
        (_DriverError("UNIQUE constraint failed: commitments.user_id"), errors.UserHasActiveCommitment),
        (_DriverError("violation", constraint_name="uq_commitments_active_user"), errors.UserHasActiveCommitment),
        (_DriverError("violation", constraint_name="uq_commitments_active_slot"), errors.SlotUnavailable),
    ],
)
def test_commitment_conflicts_map_by_violated_index(orig, expected):
    exc = IntegrityError("INSERT INTO commitments ...", {}, orig)

    assert isinstance(locks_service.conflict_from_integrity_error(exc), expected)
