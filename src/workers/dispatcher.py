"""
Background Dispatch Worker
==========================

Two jobs:

* ``schedule(ride_id)`` -- fire-and-forget dispatch of one ride.  The API
  returns 202 immediately; the task runs the Assignment Coordinator and
  logs (never raises) on failure.
* A periodic release loop, every ``scheduled_release_interval_seconds``
  (default 30 s), that moves scheduled rides from ``requested`` to
  ``searching`` once their pickup is within the lead window, then
  schedules their dispatch.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance runs the release
  cycle at a time across multiple API processes.
* Each release is a compare-and-set ``requested -> searching``; a ride
  cancelled in the meantime is left alone.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis.asyncio as aioredis

from src.domain.entities import DispatchOutcome
from src.domain.enums import RideStatus
from src.domain.ports import RideStore
from src.infrastructure.locks import DistributedLock
from src.services.assignment import AssignmentCoordinator

logger = logging.getLogger(__name__)


class DispatchScheduler:
    def __init__(
        self,
        coordinator: AssignmentCoordinator,
        rides: RideStore,
        lock_client: Optional[aioredis.Redis] = None,
        interval_seconds: float = 30,
        lead_minutes: int = 15,
        key_prefix: str = "",
    ):
        self.coordinator = coordinator
        self.rides = rides
        self.lock_client = lock_client
        self.interval_seconds = interval_seconds
        self.lead = timedelta(minutes=lead_minutes)
        self.key_prefix = key_prefix

        self._dispatches: set[asyncio.Task] = set()
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    # ── Fire-and-forget dispatch ──────────────────────────────────

    def schedule(self, ride_id: int) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._dispatch_logged(ride_id))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)
        return task

    async def _dispatch_logged(self, ride_id: int) -> Optional[DispatchOutcome]:
        try:
            return await self.coordinator.dispatch(ride_id)
        except Exception:
            logger.exception("Dispatch of ride %s failed", ride_id)
            return None

    async def drain(self) -> None:
        """Wait for in-flight dispatches (shutdown, tests)."""
        if self._dispatches:
            await asyncio.gather(*self._dispatches, return_exceptions=True)

    # ── Release loop ──────────────────────────────────────────────

    async def start(self) -> None:
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Dispatch worker started (release interval=%ss)", self.interval_seconds
        )

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.drain()
        logger.info("Dispatch worker stopped")

    async def _loop(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.run_release_cycle()
            except Exception:
                logger.exception("Unhandled error in scheduled-ride release cycle")
            # Wait for the interval or until stop is signalled
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass  # next cycle

    async def run_release_cycle(self) -> int:
        """Release due scheduled rides.  Returns how many were released."""
        if self.lock_client is None:
            return await self._release_due()

        lock = DistributedLock(
            self.lock_client,
            "scheduled_ride_release",
            ttl_seconds=60,
            prefix=self.key_prefix,
        )
        if not await lock.acquire():
            logger.debug("Lock held by another worker - skipping release cycle")
            return 0
        try:
            return await self._release_due()
        finally:
            await lock.release()

    async def _release_due(self) -> int:
        cutoff = datetime.now(timezone.utc) + self.lead
        due = await self.rides.due_scheduled(cutoff)

        released = 0
        for ride in due:
            updated = await self.rides.transition(
                ride.id, ride.tenant_id, RideStatus.REQUESTED, RideStatus.SEARCHING
            )
            if updated is None:
                continue  # cancelled or already released
            released += 1
            self.schedule(ride.id)

        if released:
            logger.info("Released %d scheduled rides for dispatch", released)
        return released
