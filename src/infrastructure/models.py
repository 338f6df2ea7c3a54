"""
SQLAlchemy ORM models  (PostgreSQL in production, SQLite in tests).

Tables
------
* ``tenants``   -- white-label operators with their pricing document
* ``users``     -- riders and drivers, always tenant-scoped
* ``vehicles``  -- driver vehicles; ``is_active`` gates assignment
* ``rides``     -- ride requests and trip history

Driver positions are not stored here; they live in the Redis GEO index.

Indexes
-------
* **B-Tree** on ``tenant_id`` everywhere (every query is tenant-scoped),
  on ``rides.status`` + ``rides.pickup_h3`` for local demand counts and
  on ``rides.driver_id`` for the "driver already busy" check.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from src.domain.entities import Location, Ride
from src.domain.enums import PaymentMethod, RideStatus, VehicleType


def _enum(enum_cls, name: str) -> Enum:
    # Persist the lowercase values, not the member names
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


class TenantModel(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    default_currency = Column(String(3), default="EUR", nullable=False)
    pricing_config = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    user_type = Column(String(20), default="rider", nullable=False)
    status = Column(String(30), default="active", nullable=False)
    average_rating = Column(Float, default=5.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_users_tenant", "tenant_id"),
        Index("idx_users_email_tenant", "email", "tenant_id", unique=True),
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    make = Column(String(50), nullable=False)
    model = Column(String(50), nullable=False)
    color = Column(String(30), default="")
    registration_number = Column(String(10), nullable=False)
    vehicle_type = Column(
        _enum(VehicleType, "vehicle_type"), default=VehicleType.STANDARD
    )
    taximeter_serial_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_vehicles_tenant", "tenant_id"),
        Index("idx_vehicles_driver", "driver_id"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)

    status = Column(
        _enum(RideStatus, "ride_status"),
        default=RideStatus.REQUESTED,
        nullable=False,
    )

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(500), default="")
    pickup_h3 = Column(String(20), nullable=True)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    dropoff_address = Column(String(500), default="")

    vehicle_type_requested = Column(
        _enum(VehicleType, "vehicle_type"), default=VehicleType.STANDARD
    )
    estimated_distance_m = Column(Float, nullable=True)
    estimated_duration_s = Column(Integer, nullable=True)
    estimated_fare = Column(Float, nullable=True)
    base_fare = Column(Float, nullable=True)
    surge_multiplier = Column(Float, default=1.0, nullable=False)
    currency = Column(String(3), default="EUR", nullable=False)

    final_fare = Column(Float, nullable=True)
    distance_fare = Column(Float, nullable=True)
    time_fare = Column(Float, nullable=True)
    vat_amount = Column(Float, nullable=True)
    actual_distance_m = Column(Float, nullable=True)
    actual_duration_s = Column(Integer, nullable=True)
    taximeter_fare = Column(Float, nullable=True)
    taximeter_serial_number = Column(String(50), nullable=True)
    taximeter_receipt_number = Column(String(50), nullable=True)

    payment_method = Column(
        _enum(PaymentMethod, "payment_method"), default=PaymentMethod.CARD
    )
    is_scheduled = Column(Boolean, default=False, nullable=False)
    scheduled_pickup_time = Column(DateTime(timezone=True), nullable=True)
    passenger_count = Column(Integer, default=1, nullable=False)
    requires_child_seat = Column(Boolean, default=False, nullable=False)
    requires_wheelchair_access = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    cancelled_by = Column(String(20), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    driver_assigned_at = Column(DateTime(timezone=True), nullable=True)
    driver_arrived_at = Column(DateTime(timezone=True), nullable=True)
    ride_started_at = Column(DateTime(timezone=True), nullable=True)
    ride_completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_tenant", "tenant_id"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_rider", "rider_id"),
        Index("idx_rides_status_h3", "status", "pickup_h3"),
    )

    def to_entity(self) -> Ride:
        return Ride(
            id=self.id,
            tenant_id=self.tenant_id,
            rider_id=self.rider_id,
            driver_id=self.driver_id,
            vehicle_id=self.vehicle_id,
            status=RideStatus(self.status),
            pickup=Location(self.pickup_lat, self.pickup_lng),
            dropoff=Location(self.dropoff_lat, self.dropoff_lng),
            pickup_address=self.pickup_address or "",
            dropoff_address=self.dropoff_address or "",
            vehicle_type=VehicleType(
                self.vehicle_type_requested or VehicleType.STANDARD
            ),
            estimated_fare=self.estimated_fare,
            estimated_distance_m=self.estimated_distance_m,
            estimated_duration_s=self.estimated_duration_s,
            surge_multiplier=self.surge_multiplier or 1.0,
            currency=self.currency,
            final_fare=self.final_fare,
            distance_fare=self.distance_fare,
            time_fare=self.time_fare,
            vat_amount=self.vat_amount,
            actual_distance_m=self.actual_distance_m,
            actual_duration_s=self.actual_duration_s,
            taximeter_fare=self.taximeter_fare,
            taximeter_serial_number=self.taximeter_serial_number,
            taximeter_receipt_number=self.taximeter_receipt_number,
            is_scheduled=self.is_scheduled,
            scheduled_pickup_time=self.scheduled_pickup_time,
            passenger_count=self.passenger_count,
            payment_method=PaymentMethod(self.payment_method or PaymentMethod.CARD),
            cancelled_by=self.cancelled_by,
            cancellation_reason=self.cancellation_reason,
            created_at=self.created_at,
        )
