"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (requested -> searching -> driver_assigned -> driver_arriving ->
  arrived -> in_progress -> completed, plus cancellation side exits).
- ``TenantPricingConfig.validate`` encapsulates the pricing invariants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import RIDE_TRANSITIONS, PaymentMethod, RideStatus, VehicleType
from .exceptions import InvalidTenant, InvalidTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Route:
    distance_m: float
    duration_s: int


@dataclass(frozen=True)
class TenantPricingConfig:
    tenant_id: int
    base_fare: float
    per_km_rate: float
    per_minute_rate: float
    minimum_fare: float
    booking_fee: float
    surge_enabled: bool = False
    vat_rate: Optional[float] = None  # None -> platform passenger rate
    currency: str = "EUR"

    def validate(self) -> "TenantPricingConfig":
        rates = (
            self.base_fare,
            self.per_km_rate,
            self.per_minute_rate,
            self.minimum_fare,
            self.booking_fee,
        )
        if any(r < 0 for r in rates):
            raise InvalidTenant(
                f"Tenant {self.tenant_id} has a negative pricing rate"
            )
        if self.vat_rate is not None and not 0 <= self.vat_rate < 1:
            raise InvalidTenant(
                f"Tenant {self.tenant_id} VAT rate {self.vat_rate} outside [0, 1)"
            )
        return self


@dataclass(frozen=True)
class FareEstimate:
    base_fare: float
    distance_fare: float
    time_fare: float
    booking_fee: float
    surge_multiplier: float
    surge_amount: float
    subtotal: float
    vat_amount: float
    total: float
    currency: str
    estimated_distance_m: float
    estimated_duration_s: int
    route_source: str = "provider"


@dataclass(frozen=True)
class RideRequest:
    pickup: Location
    dropoff: Location
    pickup_address: str = ""
    dropoff_address: str = ""
    vehicle_type: VehicleType = VehicleType.STANDARD
    scheduled_pickup_time: Optional[datetime] = None
    passenger_count: int = 1
    requires_child_seat: bool = False
    requires_wheelchair_access: bool = False
    notes: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CARD


@dataclass(frozen=True)
class VehicleDescriptor:
    vehicle_type: str = VehicleType.STANDARD.value
    make: str = ""
    model: str = ""
    color: str = ""
    registration_number: str = ""


@dataclass(frozen=True)
class IndexedDriver:
    """One hit from the geo-index, before ranking."""

    driver_id: int
    location: Location
    vehicle: VehicleDescriptor
    rating: float = 5.0
    is_available: bool = True
    distance_m: Optional[float] = None


@dataclass(frozen=True)
class CandidateDriver:
    driver_id: int
    location: Location
    distance_m: float
    eta_s: int
    rating: float
    vehicle: VehicleDescriptor


@dataclass(frozen=True)
class TaximeterReading:
    fare: float
    serial_number: Optional[str] = None
    receipt_number: Optional[str] = None
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class DispatchOutcome:
    status: str  # "assigned" | "no_drivers_available" | "skipped"
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None

    ASSIGNED = "assigned"
    NO_DRIVERS = "no_drivers_available"
    SKIPPED = "skipped"

    @classmethod
    def assigned(cls, driver_id: int, vehicle_id: int) -> "DispatchOutcome":
        return cls(cls.ASSIGNED, driver_id, vehicle_id)

    @classmethod
    def no_drivers(cls) -> "DispatchOutcome":
        return cls(cls.NO_DRIVERS)

    @classmethod
    def skipped(cls) -> "DispatchOutcome":
        return cls(cls.SKIPPED)


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    tenant_id: int = 0
    rider_id: int = 0
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    status: RideStatus = RideStatus.REQUESTED
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    dropoff: Location = field(default_factory=lambda: Location(0, 0))
    pickup_address: str = ""
    dropoff_address: str = ""
    vehicle_type: VehicleType = VehicleType.STANDARD

    # Estimate captured at booking
    estimated_fare: Optional[float] = None
    estimated_distance_m: Optional[float] = None
    estimated_duration_s: Optional[int] = None
    surge_multiplier: float = 1.0
    currency: str = "EUR"

    # Filled in at completion
    final_fare: Optional[float] = None
    distance_fare: Optional[float] = None
    time_fare: Optional[float] = None
    vat_amount: Optional[float] = None
    actual_distance_m: Optional[float] = None
    actual_duration_s: Optional[int] = None
    taximeter_fare: Optional[float] = None
    taximeter_serial_number: Optional[str] = None
    taximeter_receipt_number: Optional[str] = None

    is_scheduled: bool = False
    scheduled_pickup_time: Optional[datetime] = None
    passenger_count: int = 1
    payment_method: PaymentMethod = PaymentMethod.CARD

    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return not RIDE_TRANSITIONS.get(self.status)

    def can_transition_to(self, new_status: RideStatus) -> bool:
        return new_status in RIDE_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
