"""
Assignment coordinator tests.

Covers the outcomes (assigned, no drivers, skipped), candidate fallthrough
on conflicts and errors, the offer gate, per-driver locking and the
exclusivity guarantee under concurrent dispatches.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.domain.entities import DispatchOutcome
from src.domain.enums import RideStatus
from src.domain.events import NoDriversAvailable, RideAssigned
from src.infrastructure.locks import DistributedLock
from src.services.assignment import AssignmentCoordinator
from src.services.driver_search import NearbyDriverSearch
from tests.fakes import FakeAcceptanceGate, HELSINKI_CENTRE, nearby, searching_ride


@pytest.fixture
def search(driver_index):
    return NearbyDriverSearch(driver_index)


@pytest.fixture
def coordinator(ride_store, search, notifier):
    return AssignmentCoordinator(ride_store, search, notifier)


def _add_driver(ride_store, driver_index, driver_id, meters, tenant_id=1, **kw):
    driver_index.add(tenant_id, driver_id, nearby(HELSINKI_CENTRE, meters), **kw)
    ride_store.add_vehicle(tenant_id, driver_id, vehicle_id=driver_id * 10)


class TestOutcomes:
    @pytest.mark.asyncio
    async def test_nearest_driver_assigned(
        self, coordinator, ride_store, driver_index, notifier
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 2, 1_200)
        _add_driver(ride_store, driver_index, 1, 300)

        outcome = await coordinator.dispatch(ride.id)

        assert outcome == DispatchOutcome.assigned(1, 10)
        stored = await ride_store.get(ride.id)
        assert stored.status == RideStatus.DRIVER_ASSIGNED
        assert (stored.driver_id, stored.vehicle_id) == (1, 10)
        [event] = notifier.of_type(RideAssigned)
        assert event.driver_id == 1 and event.vehicle_id == 10
        assert event.pickup_eta_s == 36  # 300 m at 30 km/h

    @pytest.mark.asyncio
    async def test_zero_drivers(self, coordinator, ride_store, notifier):
        ride = ride_store.put(searching_ride())

        outcome = await coordinator.dispatch(ride.id)

        assert outcome.status == DispatchOutcome.NO_DRIVERS
        assert (await ride_store.get(ride.id)).status == RideStatus.NO_DRIVERS_AVAILABLE
        [event] = notifier.of_type(NoDriversAvailable)
        assert event.candidates_tried == 0

    @pytest.mark.asyncio
    async def test_all_candidates_busy_exhausts(
        self, coordinator, ride_store, driver_index, notifier
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 1, 300)
        _add_driver(ride_store, driver_index, 2, 600)
        # Both drivers already on a live trip
        for driver_id in (1, 2):
            ride_store.put(
                searching_ride(status=RideStatus.IN_PROGRESS, driver_id=driver_id)
            )

        outcome = await coordinator.dispatch(ride.id)

        assert outcome.status == DispatchOutcome.NO_DRIVERS
        assert (await ride_store.get(ride.id)).status == RideStatus.NO_DRIVERS_AVAILABLE
        assert notifier.of_type(NoDriversAvailable)[0].candidates_tried == 2

    @pytest.mark.asyncio
    async def test_unknown_ride_skipped(self, coordinator):
        assert (await coordinator.dispatch(999)).status == DispatchOutcome.SKIPPED

    @pytest.mark.asyncio
    async def test_ride_not_searching_skipped(
        self, coordinator, ride_store, driver_index
    ):
        ride = ride_store.put(searching_ride(status=RideStatus.CANCELLED_BY_RIDER))
        _add_driver(ride_store, driver_index, 1, 300)

        assert (await coordinator.dispatch(ride.id)).status == DispatchOutcome.SKIPPED
        assert ride_store.assign_calls == []

    @pytest.mark.asyncio
    async def test_search_failure_treated_as_no_drivers(self, ride_store, notifier):
        search = AsyncMock()
        search.find_nearby = AsyncMock(side_effect=ConnectionError("redis down"))
        coordinator = AssignmentCoordinator(ride_store, search, notifier)
        ride = ride_store.put(searching_ride())

        outcome = await coordinator.dispatch(ride.id)
        assert outcome.status == DispatchOutcome.NO_DRIVERS


class TestCandidateFallthrough:
    @pytest.mark.asyncio
    async def test_driver_without_active_vehicle_skipped(
        self, coordinator, ride_store, driver_index
    ):
        ride = ride_store.put(searching_ride())
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 200))  # no vehicle on file
        _add_driver(ride_store, driver_index, 2, 700)

        outcome = await coordinator.dispatch(ride.id)
        assert outcome == DispatchOutcome.assigned(2, 20)

    @pytest.mark.asyncio
    async def test_persistence_error_moves_to_next_candidate(
        self, coordinator, ride_store, driver_index
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 1, 200)
        _add_driver(ride_store, driver_index, 2, 700)
        ride_store.failing_drivers.add(1)

        outcome = await coordinator.dispatch(ride.id)
        assert outcome == DispatchOutcome.assigned(2, 20)

    @pytest.mark.asyncio
    async def test_cancelled_mid_search_is_not_overwritten(
        self, ride_store, search, notifier, driver_index
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 1, 200)
        _add_driver(ride_store, driver_index, 2, 700)

        class CancellingGate(FakeAcceptanceGate):
            async def await_acceptance(self, ride_, candidate, timeout_s):
                # Rider cancels while the first driver considers the offer
                await ride_store.transition(
                    ride_.id, 1, RideStatus.SEARCHING, RideStatus.CANCELLED_BY_RIDER
                )
                return False

        coordinator = AssignmentCoordinator(
            ride_store, search, notifier, gate=CancellingGate()
        )
        outcome = await coordinator.dispatch(ride.id)

        assert outcome.status == DispatchOutcome.SKIPPED
        assert (await ride_store.get(ride.id)).status == RideStatus.CANCELLED_BY_RIDER
        assert notifier.of_type(NoDriversAvailable) == []


class TestOfferGate:
    @pytest.mark.asyncio
    async def test_declined_offer_goes_to_next_driver(
        self, ride_store, search, notifier, driver_index
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 1, 200)
        _add_driver(ride_store, driver_index, 2, 700)
        gate = FakeAcceptanceGate(answers={1: False, 2: True})

        coordinator = AssignmentCoordinator(ride_store, search, notifier, gate=gate)
        outcome = await coordinator.dispatch(ride.id)

        assert outcome == DispatchOutcome.assigned(2, 20)
        assert gate.offers == [1, 2]

    @pytest.mark.asyncio
    async def test_offer_window_expires(
        self, ride_store, search, notifier, driver_index
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 1, 200)
        gate = FakeAcceptanceGate(delay=5)

        coordinator = AssignmentCoordinator(
            ride_store, search, notifier, gate=gate, offer_timeout_s=0.01
        )
        outcome = await coordinator.dispatch(ride.id)
        assert outcome.status == DispatchOutcome.NO_DRIVERS


class TestDriverLock:
    @pytest.mark.asyncio
    async def test_locked_driver_skipped(
        self, ride_store, search, notifier, driver_index
    ):
        ride = ride_store.put(searching_ride())
        _add_driver(ride_store, driver_index, 1, 200)
        _add_driver(ride_store, driver_index, 2, 700)

        redis = AsyncMock()
        # Driver 1's lock is held elsewhere, driver 2's is free
        redis.set = AsyncMock(side_effect=[False, True])
        redis.eval = AsyncMock(return_value=1)

        coordinator = AssignmentCoordinator(
            ride_store,
            search,
            notifier,
            driver_lock=DistributedLock.driver_factory(redis, prefix="mobility:"),
        )
        outcome = await coordinator.dispatch(ride.id)

        assert outcome == DispatchOutcome.assigned(2, 20)
        first_key = redis.set.await_args_list[0].args[0]
        assert first_key == "mobility:lock:1:driver:1"
        redis.eval.assert_awaited_once()  # only the acquired lock is released


class TestExclusivity:
    @pytest.mark.asyncio
    async def test_concurrent_dispatches_of_one_ride(
        self, coordinator, ride_store, driver_index, notifier
    ):
        ride = ride_store.put(searching_ride())
        for driver_id in range(1, 6):
            _add_driver(ride_store, driver_index, driver_id, driver_id * 150)

        outcomes = await asyncio.gather(
            *(coordinator.dispatch(ride.id) for _ in range(10))
        )

        assigned = [o for o in outcomes if o.status == DispatchOutcome.ASSIGNED]
        assert len(assigned) == 1
        assert all(
            o.status == DispatchOutcome.SKIPPED for o in outcomes if o not in assigned
        )
        stored = await ride_store.get(ride.id)
        assert stored.status == RideStatus.DRIVER_ASSIGNED
        assert stored.driver_id == assigned[0].driver_id
        assert len(notifier.of_type(RideAssigned)) == 1

    @pytest.mark.asyncio
    async def test_one_driver_never_bound_to_two_rides(
        self, coordinator, ride_store, driver_index
    ):
        rides = [ride_store.put(searching_ride()) for _ in range(4)]
        _add_driver(ride_store, driver_index, 1, 100)

        outcomes = await asyncio.gather(*(coordinator.dispatch(r.id) for r in rides))

        assert sum(o.status == DispatchOutcome.ASSIGNED for o in outcomes) == 1
        assert sum(o.status == DispatchOutcome.NO_DRIVERS for o in outcomes) == 3
        bound = [r for r in ride_store.rides.values() if r.driver_id == 1]
        assert len(bound) == 1
        assert all(r.status != RideStatus.SEARCHING for r in ride_store.rides.values())
