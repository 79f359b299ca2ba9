"""Background expiry of lapsed checkout sessions and holds."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from .checkout import sweep_expired
from .events import ListingEventHub, hub

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class ExpirySweeper:
    """Run the expiry sweep on a fixed interval until stopped."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        interval_seconds: float,
        events: ListingEventHub = hub,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._events = events
        self._task: asyncio.Task[None] | None = None
        self._stopped = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        async with self._session_factory() as session:
            return await sweep_expired(session, events=self._events)

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info("Expiry sweeper started (every %.0fs)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopped.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    async def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                expired = await self.run_once()
                if expired:
                    logger.info("Sweep expired %d reservation(s)", expired)
            except Exception:  # noqa: BLE001
                logger.exception("Expiry sweep failed")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
