"""Background dispatch worker: fire-and-forget dispatch and scheduled release."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.domain.entities import DispatchOutcome
from src.domain.enums import RideStatus
from src.services.assignment import AssignmentCoordinator
from src.services.driver_search import NearbyDriverSearch
from src.workers.dispatcher import DispatchScheduler
from tests.fakes import HELSINKI_CENTRE, nearby, searching_ride


@pytest.fixture
def coordinator(ride_store, driver_index, notifier):
    return AssignmentCoordinator(ride_store, NearbyDriverSearch(driver_index), notifier)


def _scheduled(ride_store, minutes_ahead: int):
    return ride_store.put(
        searching_ride(
            status=RideStatus.REQUESTED,
            is_scheduled=True,
            scheduled_pickup_time=datetime.now(timezone.utc)
            + timedelta(minutes=minutes_ahead),
        )
    )


class TestFireAndForget:
    @pytest.mark.asyncio
    async def test_schedule_runs_dispatch(self, coordinator, ride_store, driver_index):
        ride = ride_store.put(searching_ride())
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 300))
        ride_store.add_vehicle(1, 1, 10)
        scheduler = DispatchScheduler(coordinator, ride_store)

        task = scheduler.schedule(ride.id)
        await scheduler.drain()

        assert task.result() == DispatchOutcome.assigned(1, 10)
        assert ride_store.rides[ride.id].status == RideStatus.DRIVER_ASSIGNED

    @pytest.mark.asyncio
    async def test_dispatch_errors_are_logged(self, ride_store, caplog):
        coordinator = AsyncMock()
        coordinator.dispatch = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = DispatchScheduler(coordinator, ride_store)

        task = scheduler.schedule(1)
        await scheduler.drain()

        assert task.result() is None
        assert "Dispatch of ride 1 failed" in caplog.text


class TestScheduledRelease:
    @pytest.mark.asyncio
    async def test_releases_only_due_rides(self, coordinator, ride_store):
        due = _scheduled(ride_store, minutes_ahead=10)
        later = _scheduled(ride_store, minutes_ahead=120)
        scheduler = DispatchScheduler(coordinator, ride_store, lead_minutes=15)

        assert await scheduler.run_release_cycle() == 1
        await scheduler.drain()

        # No drivers around: released ride ends as no_drivers_available
        assert ride_store.rides[due.id].status == RideStatus.NO_DRIVERS_AVAILABLE
        assert ride_store.rides[later.id].status == RideStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_cancelled_ride_not_released(self, coordinator, ride_store):
        ride = _scheduled(ride_store, minutes_ahead=5)
        ride_store.rides[ride.id].status = RideStatus.CANCELLED_BY_RIDER
        scheduler = DispatchScheduler(coordinator, ride_store)

        assert await scheduler.run_release_cycle() == 0

    @pytest.mark.asyncio
    async def test_cycle_skipped_when_lock_held(self, coordinator, ride_store):
        _scheduled(ride_store, minutes_ahead=5)
        redis = AsyncMock()
        redis.set = AsyncMock(return_value=False)
        scheduler = DispatchScheduler(coordinator, ride_store, lock_client=redis)

        assert await scheduler.run_release_cycle() == 0
        redis.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cycle_releases_lock(self, coordinator, ride_store):
        redis = AsyncMock()
        redis.set = AsyncMock(return_value=True)
        redis.eval = AsyncMock(return_value=1)
        scheduler = DispatchScheduler(
            coordinator, ride_store, lock_client=redis, key_prefix="mobility:"
        )

        await scheduler.run_release_cycle()

        assert redis.set.await_args.args[0] == "mobility:lock:scheduled_ride_release"
        redis.eval.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_and_stop(self, coordinator, ride_store):
        _scheduled(ride_store, minutes_ahead=1)
        scheduler = DispatchScheduler(coordinator, ride_store, interval_seconds=60)

        await scheduler.start()
        for _ in range(3):
            await asyncio.sleep(0)  # let the first cycle run
        await scheduler.stop()

        assert all(r.status != RideStatus.REQUESTED for r in ride_store.rides.values())
