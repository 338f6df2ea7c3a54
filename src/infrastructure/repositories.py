"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives the session factory and runs every method in
its own short transaction, returning domain entities rather than ORM
rows.  Mutations are compare-and-set ``UPDATE ... WHERE status = :expected``
statements: the check and the write are one statement, so two racing
callers can never both win.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from .models import RideModel, TenantModel, VehicleModel
from src.config import Settings
from src.domain.entities import FareEstimate, Ride, RideRequest, TenantPricingConfig
from src.domain.enums import DRIVER_BUSY_STATUSES, RideStatus
from src.domain.exceptions import InvalidTenant


class RideRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        *,
        tenant_id: int,
        rider_id: int,
        request: RideRequest,
        status: RideStatus,
        estimate: FareEstimate,
        pickup_cell: Optional[str] = None,
    ) -> Ride:
        ride = RideModel(
            tenant_id=tenant_id,
            rider_id=rider_id,
            status=status,
            pickup_lat=request.pickup.latitude,
            pickup_lng=request.pickup.longitude,
            pickup_address=request.pickup_address,
            pickup_h3=pickup_cell,
            dropoff_lat=request.dropoff.latitude,
            dropoff_lng=request.dropoff.longitude,
            dropoff_address=request.dropoff_address,
            vehicle_type_requested=request.vehicle_type,
            estimated_distance_m=estimate.estimated_distance_m,
            estimated_duration_s=estimate.estimated_duration_s,
            estimated_fare=estimate.total,
            base_fare=estimate.base_fare,
            surge_multiplier=estimate.surge_multiplier,
            currency=estimate.currency,
            payment_method=request.payment_method,
            is_scheduled=request.scheduled_pickup_time is not None,
            scheduled_pickup_time=request.scheduled_pickup_time,
            passenger_count=request.passenger_count,
            requires_child_seat=request.requires_child_seat,
            requires_wheelchair_access=request.requires_wheelchair_access,
            notes=request.notes,
        )
        async with self.session_factory() as session, session.begin():
            session.add(ride)
            await session.flush()
            await session.refresh(ride)  # load server-side defaults
            return ride.to_entity()

    async def get(self, ride_id: int) -> Optional[Ride]:
        async with self.session_factory() as session:
            ride = await session.get(RideModel, ride_id)
            return ride.to_entity() if ride else None

    async def get_scoped(self, ride_id: int, tenant_id: int) -> Optional[Ride]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RideModel).where(
                    RideModel.id == ride_id, RideModel.tenant_id == tenant_id
                )
            )
            ride = result.scalar_one_or_none()
            return ride.to_entity() if ride else None

    async def transition(
        self,
        ride_id: int,
        tenant_id: int,
        expected: RideStatus,
        new_status: RideStatus,
        **values: Any,
    ) -> Optional[Ride]:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(RideModel)
                .where(
                    RideModel.id == ride_id,
                    RideModel.tenant_id == tenant_id,
                    RideModel.status == expected,
                )
                .values(status=new_status, updated_at=func.now(), **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            ride = await session.get(RideModel, ride_id)
            return ride.to_entity()

    async def assign_driver(
        self, ride_id: int, tenant_id: int, driver_id: int
    ) -> Optional[int]:
        """
        Bind *driver_id* and its active vehicle to a ``searching`` ride.

        One UPDATE re-checks all three preconditions -- ride still
        searching, driver has an active vehicle, driver not on another
        live ride -- and writes driver, vehicle and status together.
        On PostgreSQL a concurrent loser blocks on the row lock and then
        sees ``status != 'searching'``, matching zero rows.
        """
        other = aliased(RideModel)
        active_vehicle = (
            select(VehicleModel.id)
            .where(
                VehicleModel.tenant_id == tenant_id,
                VehicleModel.driver_id == driver_id,
                VehicleModel.is_active.is_(True),
            )
            .order_by(VehicleModel.id)
            .limit(1)
            .scalar_subquery()
        )
        driver_busy = (
            select(other.id)
            .where(
                other.tenant_id == tenant_id,
                other.driver_id == driver_id,
                other.status.in_(sorted(DRIVER_BUSY_STATUSES)),
            )
            .exists()
        )

        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                update(RideModel)
                .where(
                    RideModel.id == ride_id,
                    RideModel.tenant_id == tenant_id,
                    RideModel.status == RideStatus.SEARCHING,
                    active_vehicle.is_not(None),
                    ~driver_busy,
                )
                .values(
                    driver_id=driver_id,
                    vehicle_id=active_vehicle,
                    status=RideStatus.DRIVER_ASSIGNED,
                    driver_assigned_at=func.now(),
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            ride = await session.get(RideModel, ride_id)
            return ride.vehicle_id

    async def count_open_in_cells(self, tenant_id: int, cells: set[str]) -> int:
        if not cells:
            return 0
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(RideModel)
                .where(
                    RideModel.tenant_id == tenant_id,
                    RideModel.status == RideStatus.SEARCHING,
                    RideModel.pickup_h3.in_(sorted(cells)),
                )
            )
            return result.scalar() or 0

    async def due_scheduled(self, before: datetime, limit: int = 100) -> list[Ride]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RideModel)
                .where(
                    RideModel.status == RideStatus.REQUESTED,
                    RideModel.is_scheduled.is_(True),
                    RideModel.scheduled_pickup_time <= before,
                )
                .order_by(RideModel.scheduled_pickup_time)
                .limit(limit)
            )
            return [r.to_entity() for r in result.scalars().all()]


class TenantRepository:
    """Reads tenant pricing documents, filling gaps with platform defaults."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], defaults: Settings
    ):
        self.session_factory = session_factory
        self.defaults = defaults

    async def get_pricing(self, tenant_id: int) -> Optional[TenantPricingConfig]:
        async with self.session_factory() as session:
            tenant = await session.get(TenantModel, tenant_id)
        if tenant is None or tenant.pricing_config is None:
            return None

        doc = tenant.pricing_config
        d = self.defaults
        vat_rate = doc.get("vat_rate")
        try:
            return TenantPricingConfig(
                tenant_id=tenant.id,
                base_fare=float(doc.get("base_fare", d.default_base_fare)),
                per_km_rate=float(doc.get("per_km_rate", d.default_per_km_rate)),
                per_minute_rate=float(
                    doc.get("per_minute_rate", d.default_per_minute_rate)
                ),
                minimum_fare=float(doc.get("minimum_fare", d.default_minimum_fare)),
                booking_fee=float(doc.get("booking_fee", d.default_booking_fee)),
                surge_enabled=bool(doc.get("surge_enabled", False)),
                vat_rate=float(vat_rate) if vat_rate is not None else None,
                currency=tenant.default_currency or d.default_currency,
            )
        except (TypeError, ValueError) as exc:
            raise InvalidTenant(
                f"Tenant {tenant_id} has a malformed pricing document: {exc}"
            ) from exc
