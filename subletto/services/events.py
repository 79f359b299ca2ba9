"""In-memory fan-out of reservation state changes to live listing viewers."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]

SLOT_LOCKED = "slot.locked"
SLOT_RELEASED = "slot.released"
SLOT_FILLED = "slot.filled"
SESSION_STARTED = "session.started"
SESSION_COMPLETED = "session.completed"
SESSION_CANCELLED = "session.cancelled"
SESSION_EXPIRED = "session.expired"


@dataclass(slots=True)
class Subscriber:
    """Connection wrapper for a channel subscriber."""

    subscriber_id: str
    send: SendCallable


@dataclass(slots=True, frozen=True)
class ReservationEvent:
    """Advisory notice that a slot or session changed; clients re-fetch counts."""

    type: str
    listing_id: str
    slot_id: str | None = None
    user_id: str | None = None
    commitment_id: str | None = None
    session_id: str | None = None
    reason: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_message(self) -> dict:
        return {
            "type": self.type,
            "listing_id": self.listing_id,
            "slot_id": self.slot_id,
            "user_id": self.user_id,
            "commitment_id": self.commitment_id,
            "session_id": self.session_id,
            "reason": self.reason,
            "occurred_at": self.occurred_at.isoformat(),
        }


def listing_channel(listing_id: str) -> str:
    return f"listing:{listing_id}"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


class ListingEventHub:
    """Manage channels and fan-out events to their subscribers."""

    def __init__(self) -> None:
        self._channels: Dict[str, Dict[str, Subscriber]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, channel: str, subscriber: Subscriber) -> int:
        """Register a subscriber and return the channel's subscriber count."""

        async with self._lock:
            subscribers = self._channels.setdefault(channel, {})
            subscribers[subscriber.subscriber_id] = subscriber
            return len(subscribers)

    async def unsubscribe(self, channel: str, subscriber_id: str) -> None:
        """Remove a subscriber, cleaning up empty channels."""

        async with self._lock:
            subscribers = self._channels.get(channel)
            if not subscribers:
                return
            subscribers.pop(subscriber_id, None)
            if not subscribers:
                self._channels.pop(channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._channels.get(channel, {}))

    async def publish(self, event: ReservationEvent) -> None:
        """Deliver an event to the listing channel and the acting user's channel."""

        channels = [listing_channel(event.listing_id)]
        if event.user_id:
            channels.append(user_channel(event.user_id))

        async with self._lock:
            seen: set[str] = set()
            targets = []
            for channel in channels:
                for subscriber in self._channels.get(channel, {}).values():
                    # A socket watching both channels gets each event once.
                    if subscriber.subscriber_id in seen:
                        continue
                    seen.add(subscriber.subscriber_id)
                    targets.append((channel, subscriber))

        if not targets:
            return

        message = event.as_message()
        results = await asyncio.gather(
            *(subscriber.send(message) for _, subscriber in targets), return_exceptions=True
        )
        for (channel, subscriber), result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Dropping subscriber %s on %s after delivery failure: %s",
                    subscriber.subscriber_id,
                    channel,
                    result,
                )
                await self.unsubscribe(channel, subscriber.subscriber_id)

    async def publish_all(self, events: Iterable[ReservationEvent]) -> None:
        for event in events:
            await self.publish(event)


hub = ListingEventHub()
