"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.domain.entities import FareEstimate, Location, Ride, RideRequest, TaximeterReading
from src.domain.enums import CancelledBy, PaymentMethod, VehicleType


# ── Requests ──────────────────────────────────────────────────────────


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_location(self) -> Location:
        return Location(self.latitude, self.longitude)


class FareEstimateRequest(BaseModel):
    pickup: Coordinates
    dropoff: Coordinates
    vehicle_type: VehicleType = VehicleType.STANDARD


class RideCreateRequest(BaseModel):
    pickup: Coordinates
    dropoff: Coordinates
    pickup_address: str = Field("", max_length=500)
    dropoff_address: str = Field("", max_length=500)
    vehicle_type: VehicleType = VehicleType.STANDARD
    scheduled_pickup_time: Optional[datetime] = None
    passenger_count: int = Field(1, ge=1, le=8)
    requires_child_seat: bool = False
    requires_wheelchair_access: bool = False
    notes: Optional[str] = Field(None, max_length=1000)
    payment_method: PaymentMethod = PaymentMethod.CARD

    def to_domain(self) -> RideRequest:
        return RideRequest(
            pickup=self.pickup.to_location(),
            dropoff=self.dropoff.to_location(),
            pickup_address=self.pickup_address,
            dropoff_address=self.dropoff_address,
            vehicle_type=self.vehicle_type,
            scheduled_pickup_time=self.scheduled_pickup_time,
            passenger_count=self.passenger_count,
            requires_child_seat=self.requires_child_seat,
            requires_wheelchair_access=self.requires_wheelchair_access,
            notes=self.notes,
            payment_method=self.payment_method,
        )


class StatusUpdateRequest(BaseModel):
    # Driver progress only; assignment, completion and cancellation have
    # their own endpoints
    status: Literal["driver_arriving", "arrived", "in_progress"]


class TaximeterPayload(BaseModel):
    fare: float = Field(..., ge=0)
    serial_number: Optional[str] = Field(None, max_length=50)
    receipt_number: Optional[str] = Field(None, max_length=50)
    recorded_at: Optional[datetime] = None

    def to_domain(self) -> TaximeterReading:
        return TaximeterReading(
            fare=self.fare,
            serial_number=self.serial_number,
            receipt_number=self.receipt_number,
            recorded_at=self.recorded_at,
        )


class CompleteRideRequest(BaseModel):
    actual_distance_m: float = Field(..., ge=0)
    actual_duration_s: int = Field(..., ge=0)
    taximeter: Optional[TaximeterPayload] = None


class CancelRideRequest(BaseModel):
    cancelled_by: CancelledBy = CancelledBy.RIDER
    reason: Optional[str] = Field(None, max_length=500)


class OfferResponseRequest(BaseModel):
    driver_id: int
    accept: bool


# ── Responses ─────────────────────────────────────────────────────────


class FareEstimateResponse(BaseModel):
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
    route_source: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_estimate(cls, estimate: FareEstimate) -> "FareEstimateResponse":
        return cls.model_validate(estimate)


class RideResponse(BaseModel):
    id: int
    tenant_id: int
    rider_id: int
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    status: str
    pickup: Coordinates
    dropoff: Coordinates
    pickup_address: str = ""
    dropoff_address: str = ""
    vehicle_type: str
    estimated_fare: Optional[float] = None
    surge_multiplier: float = 1.0
    currency: str
    final_fare: Optional[float] = None
    vat_amount: Optional[float] = None
    taximeter_fare: Optional[float] = None
    is_scheduled: bool = False
    scheduled_pickup_time: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_ride(cls, ride: Ride) -> "RideResponse":
        return cls(
            id=ride.id,
            tenant_id=ride.tenant_id,
            rider_id=ride.rider_id,
            driver_id=ride.driver_id,
            vehicle_id=ride.vehicle_id,
            status=ride.status.value,
            pickup=Coordinates(
                latitude=ride.pickup.latitude, longitude=ride.pickup.longitude
            ),
            dropoff=Coordinates(
                latitude=ride.dropoff.latitude, longitude=ride.dropoff.longitude
            ),
            pickup_address=ride.pickup_address,
            dropoff_address=ride.dropoff_address,
            vehicle_type=ride.vehicle_type.value,
            estimated_fare=ride.estimated_fare,
            surge_multiplier=ride.surge_multiplier,
            currency=ride.currency,
            final_fare=ride.final_fare,
            vat_amount=ride.vat_amount,
            taximeter_fare=ride.taximeter_fare,
            is_scheduled=ride.is_scheduled,
            scheduled_pickup_time=ride.scheduled_pickup_time,
            cancelled_by=ride.cancelled_by,
            cancellation_reason=ride.cancellation_reason,
            created_at=ride.created_at,
        )


class RideCreatedResponse(BaseModel):
    ride: RideResponse
    estimate: FareEstimateResponse


class DispatchOutcomeResponse(BaseModel):
    ride_id: int
    status: str
    driver_id: Optional[int] = None
    vehicle_id: Optional[int] = None


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    message: str
