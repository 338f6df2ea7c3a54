"""
Assignment Coordinator
======================

Drives one ride from ``searching`` to ``driver_assigned`` or
``no_drivers_available``.

Algorithm per dispatch
----------------------
1. Load the ride.  Anything not ``searching`` is skipped (duplicate
   triggers, rides cancelled before dispatch ran).
2. Rank candidates via ``NearbyDriverSearch``.
3. For each candidate, in order:
   a. optional offer to the driver, bounded by the offer window;
   b. per-driver lock (Redis in production) so a driver is never bound
      to two rides by racing dispatches of different rides;
   c. one atomic conditional UPDATE (ride still searching, driver has an
      active vehicle and no live ride).
   The first success wins.  Conflicts and unexpected errors move on to
   the next candidate.
4. Exhaustion: compare-and-set ``searching -> no_drivers_available`` so a
   ride is never left searching, and a concurrent cancellation is never
   overwritten.

Concurrency safety
------------------
Candidates for one ride are tried sequentially.  Concurrent dispatches of
the same ride are safe because only one UPDATE can match
``status = 'searching'``; the losers observe the ride has left searching
and stop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .driver_search import NearbyDriverSearch
from src.domain.entities import CandidateDriver, DispatchOutcome, Ride
from src.domain.enums import RideStatus
from src.domain.events import NoDriversAvailable, RideAssigned
from src.domain.exceptions import AssignmentConflict
from src.domain.ports import AcceptanceGate, DriverLockFactory, EventSink, RideStore

logger = logging.getLogger(__name__)


class AssignmentCoordinator:
    def __init__(
        self,
        rides: RideStore,
        search: NearbyDriverSearch,
        notifier: EventSink,
        driver_lock: Optional[DriverLockFactory] = None,
        gate: Optional[AcceptanceGate] = None,
        offer_timeout_s: float = 30.0,
    ):
        self.rides = rides
        self.search = search
        self.notifier = notifier
        self.driver_lock = driver_lock
        self.gate = gate
        self.offer_timeout_s = offer_timeout_s

    async def dispatch(self, ride_id: int) -> DispatchOutcome:
        ride = await self.rides.get(ride_id)
        if ride is None:
            logger.warning("Dispatch requested for unknown ride %s", ride_id)
            return DispatchOutcome.skipped()
        if ride.status != RideStatus.SEARCHING:
            logger.info(
                "Ride %s is %s, not searching; dispatch skipped",
                ride_id,
                ride.status.value,
            )
            return DispatchOutcome.skipped()

        logger.info("Starting driver matching for ride %s", ride_id)
        try:
            candidates = await self.search.find_nearby(
                ride.tenant_id,
                ride.pickup.latitude,
                ride.pickup.longitude,
                ride.vehicle_type,
            )
        except Exception:
            logger.exception("Driver search failed for ride %s", ride_id)
            candidates = []

        for candidate in candidates:
            try:
                vehicle_id = await self._attempt(ride, candidate)
            except AssignmentConflict as exc:
                logger.debug(
                    "Ride %s: driver %s not assigned (%s)",
                    ride_id,
                    candidate.driver_id,
                    exc,
                )
            except Exception:
                logger.exception(
                    "Ride %s: assignment attempt for driver %s failed",
                    ride_id,
                    candidate.driver_id,
                )
            else:
                logger.info("Driver %s assigned to ride %s", candidate.driver_id, ride_id)
                self.notifier.notify(
                    RideAssigned(
                        tenant_id=ride.tenant_id,
                        ride_id=ride.id,
                        rider_id=ride.rider_id,
                        driver_id=candidate.driver_id,
                        vehicle_id=vehicle_id,
                        pickup_eta_s=candidate.eta_s,
                    )
                )
                return DispatchOutcome.assigned(candidate.driver_id, vehicle_id)

            if not await self._still_searching(ride):
                logger.info("Ride %s left searching during dispatch; stopping", ride_id)
                return DispatchOutcome.skipped()

        return await self._give_up(ride, tried=len(candidates))

    # ── Internals ─────────────────────────────────────────────────

    async def _attempt(self, ride: Ride, candidate: CandidateDriver) -> int:
        if self.gate is not None:
            try:
                accepted = await asyncio.wait_for(
                    self.gate.await_acceptance(ride, candidate, self.offer_timeout_s),
                    timeout=self.offer_timeout_s + 1,
                )
            except asyncio.TimeoutError:
                accepted = False
            if not accepted:
                raise AssignmentConflict("offer declined or expired")

        if self.driver_lock is None:
            return await self._assign(ride, candidate)

        lock = self.driver_lock(ride.tenant_id, candidate.driver_id)
        if not await lock.acquire():
            raise AssignmentConflict("driver locked by another dispatch")
        try:
            return await self._assign(ride, candidate)
        finally:
            try:
                await lock.release()
            except Exception:
                logger.exception("Failed to release lock %s", lock.key)

    async def _assign(self, ride: Ride, candidate: CandidateDriver) -> int:
        vehicle_id = await self.rides.assign_driver(
            ride.id, ride.tenant_id, candidate.driver_id
        )
        if vehicle_id is None:
            raise AssignmentConflict("ride not searching or driver unavailable")
        return vehicle_id

    async def _still_searching(self, ride: Ride) -> bool:
        try:
            current = await self.rides.get(ride.id)
        except Exception:
            logger.exception("Could not re-read ride %s", ride.id)
            return True  # keep trying candidates; the UPDATE guards correctness
        return current is not None and current.status == RideStatus.SEARCHING

    async def _give_up(self, ride: Ride, tried: int) -> DispatchOutcome:
        updated = await self.rides.transition(
            ride.id,
            ride.tenant_id,
            RideStatus.SEARCHING,
            RideStatus.NO_DRIVERS_AVAILABLE,
        )
        if updated is None:
            logger.info("Ride %s left searching before exhaustion was recorded", ride.id)
            return DispatchOutcome.skipped()

        logger.warning("No drivers available for ride %s (%d tried)", ride.id, tried)
        self.notifier.notify(
            NoDriversAvailable(
                tenant_id=ride.tenant_id, ride_id=ride.id, candidates_tried=tried
            )
        )
        return DispatchOutcome.no_drivers()
