"""Lock manager: time-boxed holds on room slots.

A user holds at most one active commitment system-wide and a slot carries at
most one active commitment. Both rules are checked inside the creating
transaction and backed by partial unique indexes, while the slot transition
itself is a guarded update so concurrent acquirers resolve to one winner.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.checkout_session import CheckoutState
from ..models.commitment import Commitment, CommitmentStatus
from ..models.listing import Listing
from ..repositories import checkout_sessions as sessions_repo
from ..repositories import commitments as commitments_repo
from ..repositories import listings as listings_repo
from ..repositories import slots as slots_repo
from . import errors
from .events import (
    SESSION_CANCELLED,
    SESSION_EXPIRED,
    SLOT_LOCKED,
    SLOT_RELEASED,
    ListingEventHub,
    ReservationEvent,
    hub,
)

logger = logging.getLogger(__name__)

SLOT_CONSTRAINT = "uq_commitments_active_slot"


async def acquire_lock(
    session: AsyncSession,
    *,
    slot_id: str,
    user_id: str,
    checklist_answers: dict[str, bool] | None = None,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> Commitment:
    """Hold ``slot_id`` for ``user_id`` for the configured lock duration."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    await expire_stale_locks(session, now=now, events=events)
    locked_until = now + timedelta(hours=settings.lock_duration_hours)

    async with session.begin():
        slot = await slots_repo.get_by_id(session, slot_id)
        if slot is None:
            raise errors.NotFound("Spot not found.")
        listing = await listings_repo.get_by_id(session, slot.listing_id)
        if listing is None:
            raise errors.NotFound("Listing not found.")

        locked = await lock_slot(
            session,
            listing=listing,
            slot_id=slot_id,
            user_id=user_id,
            locked_until=locked_until,
            now=now,
            checklist_answers=checklist_answers,
        )
        if locked is None:
            logger.warning("Slot %s is not available for user %s", slot_id, user_id)
            raise errors.SlotUnavailable()
        commitment, emitted = locked

    logger.info("Slot %s locked by %s until %s", slot_id, user_id, locked_until.isoformat())
    await events.publish_all(emitted)
    return commitment


async def lock_slot(
    session: AsyncSession,
    *,
    listing: Listing,
    slot_id: str,
    user_id: str,
    locked_until: datetime,
    now: datetime,
    checklist_answers: dict[str, bool] | None = None,
) -> tuple[Commitment, list[ReservationEvent]] | None:
    """Lock one slot and insert its commitment inside the caller's transaction.

    Returns None when another writer already moved the slot out of available.
    """

    if not listing.is_active:
        raise errors.ListingInactive()
    if listing.user_id == user_id:
        raise errors.OwnListing()
    if await commitments_repo.get_active_for_user(session, user_id) is not None:
        raise errors.UserHasActiveCommitment()

    if not await slots_repo.try_lock(
        session, slot_id=slot_id, user_id=user_id, locked_until=locked_until, now=now
    ):
        return None

    try:
        commitment = await commitments_repo.insert(
            session,
            user_id=user_id,
            listing_id=listing.id,
            slot_id=slot_id,
            locked_until=locked_until,
            now=now,
            checklist_answers=checklist_answers,
        )
    except IntegrityError as exc:
        logger.warning("Commitment insert for slot %s rejected: %s", slot_id, exc.orig)
        raise conflict_from_integrity_error(exc) from exc

    event = ReservationEvent(
        type=SLOT_LOCKED,
        listing_id=listing.id,
        slot_id=slot_id,
        user_id=user_id,
        commitment_id=commitment.id,
        occurred_at=now,
    )
    return commitment, [event]


async def cancel_lock(
    session: AsyncSession,
    *,
    commitment_id: str,
    user_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> None:
    """Release the caller's hold immediately."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    await expire_stale_locks(session, now=now, events=events)

    async with session.begin():
        commitment = await commitments_repo.get_by_id(session, commitment_id)
        if commitment is None:
            raise errors.NotFound("Commitment not found.")
        if commitment.user_id != user_id:
            raise errors.NotOwner()
        if commitment.status is not CommitmentStatus.ACTIVE:
            raise errors.NotActive()

        emitted = await end_commitment(
            session, commitment, to_status=CommitmentStatus.CANCELLED, now=now, reason="cancelled"
        )
        if emitted is None:
            raise errors.NotActive()

    logger.info("Commitment %s cancelled by %s", commitment_id, user_id)
    await events.publish_all(emitted)


async def expire_stale_locks(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> int:
    """Expire every active commitment past its ``locked_until``. Safe to repeat."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    expired = 0
    emitted: list[ReservationEvent] = []

    async with session.begin():
        for commitment in await commitments_repo.list_due(session, now=now):
            ended = await end_commitment(
                session, commitment, to_status=CommitmentStatus.EXPIRED, now=now, reason="expired"
            )
            if ended is None:
                continue
            expired += 1
            emitted.extend(ended)

    if expired:
        logger.info("Expired %d stale commitment(s)", expired)
    await events.publish_all(emitted)
    return expired


async def end_commitment(
    session: AsyncSession,
    commitment: Commitment,
    *,
    to_status: CommitmentStatus,
    now: datetime,
    reason: str,
) -> list[ReservationEvent] | None:
    """Cancel or expire an active commitment and give its slot back.

    A checkout session still riding on the commitment ends with it. Returns None
    when the commitment had already left active.
    """

    if not await commitments_repo.transition(
        session, commitment_id=commitment.id, to_status=to_status, now=now
    ):
        return None

    emitted: list[ReservationEvent] = []
    if await slots_repo.release(session, slot_id=commitment.slot_id, user_id=commitment.user_id, now=now):
        emitted.append(
            ReservationEvent(
                type=SLOT_RELEASED,
                listing_id=commitment.listing_id,
                slot_id=commitment.slot_id,
                user_id=commitment.user_id,
                commitment_id=commitment.id,
                reason=reason,
                occurred_at=now,
            )
        )

    riding = await sessions_repo.get_active_for_commitment(session, commitment.id)
    if riding is not None:
        expired = to_status is CommitmentStatus.EXPIRED
        to_state = CheckoutState.EXPIRED if expired else CheckoutState.CANCELLED
        if await sessions_repo.transition(session, session_id=riding.id, to_state=to_state, now=now):
            emitted.append(
                ReservationEvent(
                    type=SESSION_EXPIRED if expired else SESSION_CANCELLED,
                    listing_id=riding.listing_id,
                    slot_id=riding.slot_id,
                    user_id=riding.user_id,
                    commitment_id=commitment.id,
                    session_id=riding.id,
                    reason=reason,
                    occurred_at=now,
                )
            )
    return emitted


async def get_active_commitment(
    session: AsyncSession,
    *,
    user_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> Commitment | None:
    """Return the user's live hold, if any."""

    await expire_stale_locks(session, now=now, events=events)
    async with session.begin():
        return await commitments_repo.get_active_for_user(session, user_id)


async def list_commitments_for_listing(
    session: AsyncSession,
    *,
    listing_id: str,
    active_only: bool = False,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> list[Commitment]:
    await expire_stale_locks(session, now=now, events=events)
    async with session.begin():
        if await listings_repo.get_by_id(session, listing_id) is None:
            raise errors.NotFound("Listing not found.")
        return await commitments_repo.list_for_listing(session, listing_id, active_only=active_only)


def conflict_from_integrity_error(exc: IntegrityError) -> errors.ReservationError:
    """Map a unique-index violation on commitments to its domain error.

    Postgres names the violated index; SQLite names the column. Only the first
    line of the message is read since Postgres echoes key values after it.
    """

    orig = exc.orig
    constraint_name = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if not constraint_name:
        constraint_name = getattr(getattr(orig, "__cause__", None), "constraint_name", None)
    if constraint_name:
        if constraint_name == SLOT_CONSTRAINT:
            return errors.SlotUnavailable()
        return errors.UserHasActiveCommitment()

    headline = str(orig).partition("\n")[0]
    if SLOT_CONSTRAINT in headline or "commitments.slot_id" in headline:
        return errors.SlotUnavailable()
    return errors.UserHasActiveCommitment()


def _ensure_tz(value: datetime) -> datetime:
    """Ensure the provided datetime is timezone-aware in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
