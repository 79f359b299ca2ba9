"""Tests for the background expiry sweeper."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from subletto.models.slot import RoomSlot, SlotStatus
from subletto.services import locks as locks_service
from subletto.services import sweeper as sweeper_module
from subletto.services.sweeper import ExpirySweeper


@pytest.mark.asyncio
async def test_run_once_expires_lapsed_holds(session_factory, session, make_listing, events, fetch, now):
    _, slots = await make_listing(2)
    # Held long ago, so it has already lapsed against the real clock.
    await locks_service.acquire_lock(session, slot_id=slots[0].id, user_id="renter-a", now=now.replace(year=2020), events=events)

    sweeper = ExpirySweeper(session_factory, interval_seconds=60, events=events)
    assert await sweeper.run_once() == 1

    slot = await fetch(RoomSlot, slots[0].id)
    assert slot.status is SlotStatus.AVAILABLE


@pytest.mark.asyncio
async def test_sweeper_survives_failures_and_stops(monkeypatch, session_factory, events):
    calls = []

    async def flaky(session, **kwargs):
        calls.append(session)
        if len(calls) == 1:
            raise RuntimeError("db down")
        return 0

    sweep = AsyncMock(side_effect=flaky)
    monkeypatch.setattr(sweeper_module, "sweep_expired", sweep)

    sweeper = ExpirySweeper(session_factory, interval_seconds=0.01, events=events)
    sweeper.start()
    assert sweeper.running
    await asyncio.sleep(0.05)
    await sweeper.stop()

    assert not sweeper.running
    assert sweep.await_count >= 2
