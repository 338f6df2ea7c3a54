"""
Ride Lifecycle Manager
======================

Owns every ride state change outside driver assignment:

* create -- estimate, persist as ``searching`` (or ``requested`` when
  scheduled for later), announce ``ride.requested``;
* driver progress -- ``driver_arriving``, ``arrived``, ``in_progress``;
* completion -- final fare from the actual trip, optional taximeter
  override;
* cancellation -- by rider, driver or the system.

Every write is a compare-and-set against the status that was validated,
so a transition that races another writer fails with
``InvalidTransition`` instead of clobbering it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from .fare_estimator import FareEstimator
from src.domain.entities import FareEstimate, Location, Ride, RideRequest, TaximeterReading
from src.domain.enums import CANCELLATION_STATUS, CancelledBy, RideStatus
from src.domain.events import (
    RideCancelled,
    RideCompleted,
    RideRequested,
    RideStatusChanged,
)
from src.domain.exceptions import InvalidTransition, RideNotFound
from src.domain.ports import EventSink, RideStore, TenantStore
from src.domain.pricing import extract_vat, round_money
from src.domain.surge import ride_h3_cell

logger = logging.getLogger(__name__)

# Column stamped when a ride enters the status
_STATUS_TIMESTAMPS: dict[RideStatus, str] = {
    RideStatus.ARRIVED: "driver_arrived_at",
    RideStatus.IN_PROGRESS: "ride_started_at",
    RideStatus.COMPLETED: "ride_completed_at",
    RideStatus.CANCELLED_BY_RIDER: "cancelled_at",
    RideStatus.CANCELLED_BY_DRIVER: "cancelled_at",
    RideStatus.NO_DRIVERS_AVAILABLE: "cancelled_at",
}


class RideLifecycleManager:
    def __init__(
        self,
        rides: RideStore,
        tenants: TenantStore,
        estimator: FareEstimator,
        notifier: EventSink,
        h3_resolution: int = 7,
    ):
        self.rides = rides
        self.tenants = tenants
        self.estimator = estimator
        self.notifier = notifier
        self.h3_resolution = h3_resolution

    async def estimate_fare(
        self,
        tenant_id: int,
        pickup: Location,
        dropoff: Location,
        vehicle_type: str,
    ) -> FareEstimate:
        config = await self.tenants.get_pricing(tenant_id)
        return await self.estimator.estimate(config, pickup, dropoff, vehicle_type)

    async def create_ride(
        self, tenant_id: int, rider_id: int, request: RideRequest
    ) -> tuple[Ride, FareEstimate]:
        estimate = await self.estimate_fare(
            tenant_id, request.pickup, request.dropoff, request.vehicle_type
        )
        scheduled = request.scheduled_pickup_time is not None
        status = RideStatus.REQUESTED if scheduled else RideStatus.SEARCHING

        ride = await self.rides.create(
            tenant_id=tenant_id,
            rider_id=rider_id,
            request=request,
            status=status,
            estimate=estimate,
            pickup_cell=ride_h3_cell(
                request.pickup.latitude, request.pickup.longitude, self.h3_resolution
            ),
        )
        logger.info(
            "Ride %s created for rider %s (tenant %s, %s, fare %.2f %s)",
            ride.id,
            rider_id,
            tenant_id,
            status.value,
            estimate.total,
            estimate.currency,
        )
        self.notifier.notify(
            RideRequested(
                tenant_id=tenant_id,
                ride_id=ride.id,
                rider_id=rider_id,
                vehicle_type=request.vehicle_type.value,
                estimated_fare=estimate.total,
                currency=estimate.currency,
                is_scheduled=scheduled,
            )
        )
        return ride, estimate

    async def get_ride(self, ride_id: int, tenant_id: int) -> Ride:
        ride = await self.rides.get_scoped(ride_id, tenant_id)
        if ride is None:
            raise RideNotFound(f"Ride {ride_id} not found")
        return ride

    async def update_status(
        self,
        ride_id: int,
        tenant_id: int,
        new_status: RideStatus,
        **extra: Any,
    ) -> Ride:
        ride = await self.get_ride(ride_id, tenant_id)
        old_status = ride.status
        ride.transition_to(new_status)

        column = _STATUS_TIMESTAMPS.get(new_status)
        if column is not None:
            extra.setdefault(column, datetime.now(timezone.utc))

        updated = await self.rides.transition(
            ride_id, tenant_id, old_status, new_status, **extra
        )
        if updated is None:
            raise InvalidTransition(
                f"Ride {ride_id} changed concurrently; "
                f"cannot transition from {old_status.value} to {new_status.value}"
            )

        logger.info(
            "Ride %s: %s -> %s", ride_id, old_status.value, new_status.value
        )
        self.notifier.notify(
            RideStatusChanged(
                tenant_id=tenant_id,
                ride_id=ride_id,
                old_status=old_status.value,
                new_status=new_status.value,
                driver_id=updated.driver_id,
            )
        )
        return updated

    async def complete_ride(
        self,
        ride_id: int,
        tenant_id: int,
        actual_distance_m: float,
        actual_duration_s: int,
        taximeter: Optional[TaximeterReading] = None,
    ) -> Ride:
        ride = await self.get_ride(ride_id, tenant_id)
        if not ride.can_transition_to(RideStatus.COMPLETED):
            raise InvalidTransition(
                f"Cannot transition from {ride.status.value} to completed"
            )

        config = await self.tenants.get_pricing(tenant_id)
        fare = self.estimator.final_fare(
            config,
            actual_distance_m,
            actual_duration_s,
            ride.vehicle_type,
            surge_multiplier=ride.surge_multiplier,
        )

        final_fare = fare.total
        vat_amount = fare.vat_amount
        values: dict[str, Any] = {
            "distance_fare": fare.distance_fare,
            "time_fare": fare.time_fare,
            "actual_distance_m": actual_distance_m,
            "actual_duration_s": actual_duration_s,
        }
        if taximeter is not None:
            # Certified meter reading is what the rider pays
            final_fare = round_money(taximeter.fare)
            vat_rate = self.estimator.calculator.vat_rate_for(config)
            vat_amount = round_money(extract_vat(final_fare, vat_rate))
            values.update(
                taximeter_fare=final_fare,
                taximeter_serial_number=taximeter.serial_number,
                taximeter_receipt_number=taximeter.receipt_number,
            )
            if abs(final_fare - fare.total) >= 0.01:
                logger.info(
                    "Ride %s: taximeter %.2f overrides computed fare %.2f",
                    ride_id,
                    final_fare,
                    fare.total,
                )

        completed = await self.update_status(
            ride_id,
            tenant_id,
            RideStatus.COMPLETED,
            final_fare=final_fare,
            vat_amount=vat_amount,
            **values,
        )
        self.notifier.notify(
            RideCompleted(
                tenant_id=tenant_id,
                ride_id=ride_id,
                rider_id=completed.rider_id,
                driver_id=completed.driver_id,
                final_fare=final_fare,
                currency=completed.currency,
                taximeter_override=taximeter is not None,
            )
        )
        return completed

    async def cancel_ride(
        self,
        ride_id: int,
        tenant_id: int,
        cancelled_by: CancelledBy,
        reason: Optional[str] = None,
    ) -> Ride:
        cancelled_by = CancelledBy(cancelled_by)
        cancelled = await self.update_status(
            ride_id,
            tenant_id,
            CANCELLATION_STATUS[cancelled_by],
            cancelled_by=cancelled_by.value,
            cancellation_reason=reason,
        )
        self.notifier.notify(
            RideCancelled(
                tenant_id=tenant_id,
                ride_id=ride_id,
                cancelled_by=cancelled_by.value,
                reason=reason,
            )
        )
        return cancelled
