"""Checkout session manager.

A checkout session is a short booking window riding on a locked slot. It ends
COMPLETED (booking created, slot filled), CANCELLED or EXPIRED (slot released).
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.booking import Booking
from ..models.checkout_session import CheckoutSession, CheckoutState
from ..models.commitment import Commitment, CommitmentStatus
from ..models.listing import Listing
from ..repositories import bookings as bookings_repo
from ..repositories import checkout_sessions as sessions_repo
from ..repositories import commitments as commitments_repo
from ..repositories import listings as listings_repo
from ..repositories import slots as slots_repo
from . import errors, locks
from .events import (
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_EXPIRED,
    SESSION_STARTED,
    SLOT_FILLED,
    ListingEventHub,
    ReservationEvent,
    hub,
)

logger = logging.getLogger(__name__)


async def start_checkout(
    session: AsyncSession,
    *,
    listing_id: str,
    user_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> CheckoutSession:
    """Open a checkout window on a spot in ``listing_id``.

    A hold the user already has on this listing is converted and ends with the
    window; otherwise the lowest-numbered available slot is locked for the
    length of the window.
    """

    now = _ensure_tz(now or datetime.now(timezone.utc))
    await sweep_expired(session, now=now, events=events)
    expires_at = now + timedelta(minutes=settings.checkout_session_minutes)

    async with session.begin():
        listing = await listings_repo.get_by_id(session, listing_id)
        if listing is None:
            raise errors.NotFound("Listing not found.")
        if not listing.is_active:
            raise errors.ListingInactive()
        if listing.user_id == user_id:
            raise errors.OwnListing()
        if await sessions_repo.get_active_for_user(session, user_id) is not None:
            raise errors.AlreadyInCheckout()

        emitted: list[ReservationEvent] = []
        held = await commitments_repo.get_active_for_user(session, user_id)
        if held is not None:
            if held.listing_id != listing.id:
                raise errors.UserHasActiveCommitment()
            commitment = held
            expires_at = min(expires_at, held.locked_until)
        else:
            commitment, emitted = await _lock_first_available(
                session, listing=listing, user_id=user_id, locked_until=expires_at, now=now
            )

        try:
            checkout = await sessions_repo.insert(
                session,
                listing_id=listing.id,
                user_id=user_id,
                slot_id=commitment.slot_id,
                commitment_id=commitment.id,
                expires_at=expires_at,
                price_snapshot=listing.spot_price,
                move_in_date=listing.start_date,
                lease_months=listing.lease_term_months,
                now=now,
            )
        except IntegrityError as exc:
            logger.warning("Checkout insert for user %s rejected: %s", user_id, exc.orig)
            raise errors.AlreadyInCheckout() from exc

        emitted.append(
            ReservationEvent(
                type=SESSION_STARTED,
                listing_id=listing.id,
                slot_id=commitment.slot_id,
                user_id=user_id,
                commitment_id=commitment.id,
                session_id=checkout.id,
                occurred_at=now,
            )
        )

    logger.info("Checkout %s started by %s on listing %s", checkout.id, user_id, listing_id)
    await events.publish_all(emitted)
    return checkout


async def _lock_first_available(
    session: AsyncSession,
    *,
    listing: Listing,
    user_id: str,
    locked_until: datetime,
    now: datetime,
) -> tuple[Commitment, list[ReservationEvent]]:
    for slot in await slots_repo.list_available(session, listing.id):
        locked = await locks.lock_slot(
            session,
            listing=listing,
            slot_id=slot.id,
            user_id=user_id,
            locked_until=locked_until,
            now=now,
        )
        if locked is not None:
            return locked
        logger.info("Slot %s taken concurrently, trying next candidate", slot.id)

    if listing.total_slots == 1:
        raise errors.NotAvailable()
    raise errors.ListingUnavailable()


async def cancel_checkout(
    session: AsyncSession,
    *,
    session_id: str,
    user_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> None:
    """Abandon a checkout, releasing the slot it locked."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    await sweep_expired(session, now=now, events=events)

    async with session.begin():
        checkout = await _get_owned(session, session_id=session_id, user_id=user_id)
        if checkout.state is not CheckoutState.ACTIVE:
            raise errors.SessionNotActive()

        emitted = await end_session(
            session, checkout, to_state=CheckoutState.CANCELLED, now=now, reason="cancelled"
        )
        if emitted is None:
            raise errors.SessionNotActive()

    logger.info("Checkout %s cancelled by %s", session_id, user_id)
    await events.publish_all(emitted)


async def complete_checkout(
    session: AsyncSession,
    *,
    session_id: str,
    user_id: str,
    start_date: date,
    end_date: date | None = None,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> Booking:
    """Finalize a checkout into a booking and fill its slot.

    A session found past its deadline is expired (and committed as such) before
    ``SessionExpired`` is raised.
    """

    now = _ensure_tz(now or datetime.now(timezone.utc))
    if end_date is not None and end_date < start_date:
        raise errors.InvalidRequest("End date must be on or after the start date.")

    lapsed = False
    async with session.begin():
        checkout = await _get_owned(session, session_id=session_id, user_id=user_id)
        if checkout.state is CheckoutState.EXPIRED:
            raise errors.SessionExpired()
        if checkout.state is not CheckoutState.ACTIVE:
            raise errors.SessionNotActive()

        if checkout.expires_at < now:
            emitted = await end_session(
                session, checkout, to_state=CheckoutState.EXPIRED, now=now, reason="expired"
            ) or []
            lapsed = True
        else:
            booking, emitted = await _finalize(
                session, checkout, start_date=start_date, end_date=end_date, now=now
            )

    await events.publish_all(emitted)
    if lapsed:
        logger.info("Checkout %s expired before completion", session_id)
        raise errors.SessionExpired()

    logger.info("Checkout %s completed as booking %s", session_id, booking.id)
    return booking


async def _finalize(
    session: AsyncSession,
    checkout: CheckoutSession,
    *,
    start_date: date,
    end_date: date | None,
    now: datetime,
) -> tuple[Booking, list[ReservationEvent]]:
    # Each step is guarded; losing any race aborts and rolls back the whole completion.
    if not await sessions_repo.complete(session, session_id=checkout.id, now=now):
        raise errors.SessionNotActive()
    if not await commitments_repo.transition(
        session, commitment_id=checkout.commitment_id, to_status=CommitmentStatus.COMPLETED, now=now
    ):
        raise errors.SessionNotActive()
    if not await slots_repo.fill(session, slot_id=checkout.slot_id, user_id=checkout.user_id, now=now):
        raise errors.SessionNotActive()

    listing = await listings_repo.get_by_id(session, checkout.listing_id)
    if listing is None:
        raise errors.NotFound("Listing not found.")

    booking = await bookings_repo.insert(
        session,
        listing_id=checkout.listing_id,
        renter_id=checkout.user_id,
        host_id=listing.user_id,
        slot_id=checkout.slot_id,
        checkout_session_id=checkout.id,
        start_date=start_date,
        end_date=end_date,
        monthly_rent=checkout.price_snapshot,
        now=now,
    )

    common = dict(
        listing_id=checkout.listing_id,
        slot_id=checkout.slot_id,
        user_id=checkout.user_id,
        commitment_id=checkout.commitment_id,
        session_id=checkout.id,
        occurred_at=now,
    )
    emitted = [
        ReservationEvent(type=SLOT_FILLED, reason="booked", **common),
        ReservationEvent(type=SESSION_COMPLETED, **common),
    ]
    return booking, emitted


async def expire_session(
    session: AsyncSession,
    *,
    session_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> bool:
    """Expire one session if its deadline has passed. Repeat calls are no-ops."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    emitted: list[ReservationEvent] | None = None

    async with session.begin():
        checkout = await sessions_repo.get_by_id(session, session_id)
        if checkout is None:
            raise errors.NotFound("Checkout session not found.")
        if checkout.state is CheckoutState.ACTIVE and checkout.expires_at < now:
            emitted = await end_session(
                session, checkout, to_state=CheckoutState.EXPIRED, now=now, reason="expired"
            )

    if not emitted:
        return False
    await events.publish_all(emitted)
    return True


async def expire_stale_sessions(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> int:
    """Expire every ACTIVE session past ``expires_at``. Safe to repeat."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    expired = 0
    emitted: list[ReservationEvent] = []

    async with session.begin():
        for checkout in await sessions_repo.list_due(session, now=now):
            ended = await end_session(
                session, checkout, to_state=CheckoutState.EXPIRED, now=now, reason="expired"
            )
            if ended is None:
                continue
            expired += 1
            emitted.extend(ended)

    if expired:
        logger.info("Expired %d stale checkout session(s)", expired)
    await events.publish_all(emitted)
    return expired


async def sweep_expired(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> int:
    """Expire lapsed sessions, then lapsed holds."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    sessions_expired = await expire_stale_sessions(session, now=now, events=events)
    locks_expired = await locks.expire_stale_locks(session, now=now, events=events)
    return sessions_expired + locks_expired


async def end_session(
    session: AsyncSession,
    checkout: CheckoutSession,
    *,
    to_state: CheckoutState,
    now: datetime,
    reason: str,
) -> list[ReservationEvent] | None:
    """Cancel or expire an ACTIVE session. None if it already left ACTIVE."""

    if not await sessions_repo.transition(session, session_id=checkout.id, to_state=to_state, now=now):
        return None

    emitted = [
        ReservationEvent(
            type=SESSION_EXPIRED if to_state is CheckoutState.EXPIRED else SESSION_CANCELLED,
            listing_id=checkout.listing_id,
            slot_id=checkout.slot_id,
            user_id=checkout.user_id,
            commitment_id=checkout.commitment_id,
            session_id=checkout.id,
            reason=reason,
            occurred_at=now,
        )
    ]
    commitment = await commitments_repo.get_by_id(session, checkout.commitment_id)
    if commitment is not None:
        to_status = CommitmentStatus.EXPIRED if to_state is CheckoutState.EXPIRED else CommitmentStatus.CANCELLED
        released = await locks.end_commitment(session, commitment, to_status=to_status, now=now, reason=reason)
        emitted.extend(released or [])
    return emitted


async def get_active_session(
    session: AsyncSession,
    *,
    user_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> CheckoutSession | None:
    await sweep_expired(session, now=now, events=events)
    async with session.begin():
        return await sessions_repo.get_active_for_user(session, user_id)


async def get_active_session_for_listing(
    session: AsyncSession,
    *,
    listing_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> CheckoutSession | None:
    await sweep_expired(session, now=now, events=events)
    async with session.begin():
        return await sessions_repo.get_active_for_listing(session, listing_id)


async def get_checkout_session(
    session: AsyncSession,
    *,
    session_id: str,
    user_id: str,
    now: datetime | None = None,
    events: ListingEventHub = hub,
) -> CheckoutSession:
    """Return one of the caller's sessions, expired lazily if its window lapsed."""

    now = _ensure_tz(now or datetime.now(timezone.utc))
    async with session.begin():
        await _get_owned(session, session_id=session_id, user_id=user_id)
    await expire_session(session, session_id=session_id, now=now, events=events)
    async with session.begin():
        return await _get_owned(session, session_id=session_id, user_id=user_id)


async def get_booking(session: AsyncSession, *, booking_id: str, user_id: str) -> Booking:
    """Return a booking visible to its renter or host."""

    async with session.begin():
        booking = await bookings_repo.get_by_id(session, booking_id)
    if booking is None:
        raise errors.NotFound("Booking not found.")
    if user_id not in (booking.renter_id, booking.host_id):
        raise errors.NotOwner("Not authorized to view this booking.")
    return booking


async def list_user_bookings(session: AsyncSession, *, user_id: str) -> list[Booking]:
    async with session.begin():
        return await bookings_repo.list_for_renter(session, user_id)


async def list_host_bookings(session: AsyncSession, *, host_id: str) -> list[Booking]:
    async with session.begin():
        return await bookings_repo.list_for_host(session, host_id)


async def _get_owned(session: AsyncSession, *, session_id: str, user_id: str) -> CheckoutSession:
    checkout = await sessions_repo.get_by_id(session, session_id)
    if checkout is None:
        raise errors.NotFound("Checkout session not found.")
    if checkout.user_id != user_id:
        raise errors.NotOwner("This checkout session belongs to another user.")
    return checkout


def _ensure_tz(value: datetime) -> datetime:
    """Ensure the provided datetime is timezone-aware in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
