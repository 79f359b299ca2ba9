"""Tests for the listing event hub and the events websocket."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from subletto.main import app
from subletto.services.events import (
    SLOT_LOCKED,
    ListingEventHub,
    ReservationEvent,
    Subscriber,
    hub,
    listing_channel,
    user_channel,
)


class DummyConnection:
    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.messages: list[dict] = []

    async def send(self, message: dict) -> None:
        self.messages.append(message)


class BrokenConnection:
    async def send(self, message: dict) -> None:
        raise RuntimeError("socket closed")


@pytest.mark.asyncio
async def test_hub_fans_out_to_listing_and_user_channels():
    events = ListingEventHub()
    viewer = DummyConnection("viewer")
    owner = DummyConnection("owner")
    stranger = DummyConnection("stranger")

    assert await events.subscribe(listing_channel("l1"), Subscriber("viewer", viewer.send)) == 1
    await events.subscribe(user_channel("renter-a"), Subscriber("owner", owner.send))
    await events.subscribe(listing_channel("l2"), Subscriber("stranger", stranger.send))

    await events.publish(ReservationEvent(type=SLOT_LOCKED, listing_id="l1", slot_id="s1", user_id="renter-a"))

    assert viewer.messages[0]["type"] == "slot.locked"
    assert viewer.messages[0]["slot_id"] == "s1"
    assert owner.messages == viewer.messages
    assert stranger.messages == []


@pytest.mark.asyncio
async def test_hub_delivers_once_to_socket_on_both_channels():
    events = ListingEventHub()
    both = DummyConnection("both")
    await events.subscribe(listing_channel("l1"), Subscriber("both", both.send))
    await events.subscribe(user_channel("renter-a"), Subscriber("both", both.send))

    await events.publish(ReservationEvent(type=SLOT_LOCKED, listing_id="l1", user_id="renter-a"))

    assert len(both.messages) == 1


@pytest.mark.asyncio
async def test_failing_subscriber_is_dropped_without_blocking_others():
    events = ListingEventHub()
    healthy = DummyConnection("healthy")
    await events.subscribe(listing_channel("l1"), Subscriber("broken", BrokenConnection().send))
    await events.subscribe(listing_channel("l1"), Subscriber("healthy", healthy.send))

    await events.publish(ReservationEvent(type=SLOT_LOCKED, listing_id="l1"))

    assert len(healthy.messages) == 1
    assert events.subscriber_count(listing_channel("l1")) == 1

    await events.unsubscribe(listing_channel("l1"), "healthy")
    assert events.subscriber_count(listing_channel("l1")) == 0


def test_events_websocket_subscribes_listing_channel():
    client = TestClient(app)

    with client.websocket_connect("/api/listings/l-ws/events?subscriber_id=a", headers={"X-User-Id": "renter-a"}) as ws:
        subscribed = ws.receive_json()
        assert subscribed["type"] == "subscribed"
        assert subscribed["channels"] == ["listing:l-ws", "user:renter-a"]
        assert hub.subscriber_count(listing_channel("l-ws")) == 1

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_events_websocket_ignores_user_id_in_query():
    client = TestClient(app)

    with client.websocket_connect("/api/listings/l-anon/events?subscriber_id=b&user_id=renter-a") as ws:
        subscribed = ws.receive_json()
        assert subscribed["channels"] == ["listing:l-anon"]
        assert hub.subscriber_count(user_channel("renter-a")) == 0
