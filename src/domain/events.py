"""
Ride events emitted for downstream consumers (notifications, dashboards).

A closed set of variants discriminated by ``event_type``; use
``RideEvent`` (or ``parse_event``) to validate a payload back into the
right model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, TypeAdapter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _BaseEvent(BaseModel):
    event_id: UUID = Field(default_factory=uuid4)
    tenant_id: int
    ride_id: int
    timestamp: datetime = Field(default_factory=_utcnow)


class RideRequested(_BaseEvent):
    event_type: Literal["ride.requested"] = "ride.requested"
    rider_id: int
    vehicle_type: str
    estimated_fare: float
    currency: str
    is_scheduled: bool = False


class RideOffered(_BaseEvent):
    event_type: Literal["ride.offered"] = "ride.offered"
    driver_id: int
    estimated_fare: Optional[float] = None
    pickup_eta_s: int
    expires_at: datetime


class RideAssigned(_BaseEvent):
    event_type: Literal["ride.assigned"] = "ride.assigned"
    rider_id: int
    driver_id: int
    vehicle_id: int
    pickup_eta_s: int


class RideStatusChanged(_BaseEvent):
    event_type: Literal["ride.status_changed"] = "ride.status_changed"
    old_status: str
    new_status: str
    driver_id: Optional[int] = None


class RideCompleted(_BaseEvent):
    event_type: Literal["ride.completed"] = "ride.completed"
    rider_id: int
    driver_id: Optional[int] = None
    final_fare: float
    currency: str
    taximeter_override: bool = False


class RideCancelled(_BaseEvent):
    event_type: Literal["ride.cancelled"] = "ride.cancelled"
    cancelled_by: str
    reason: Optional[str] = None


class NoDriversAvailable(_BaseEvent):
    event_type: Literal["ride.no_drivers_available"] = "ride.no_drivers_available"
    candidates_tried: int = 0


RideEvent = Annotated[
    Union[
        RideRequested,
        RideOffered,
        RideAssigned,
        RideStatusChanged,
        RideCompleted,
        RideCancelled,
        NoDriversAvailable,
    ],
    Field(discriminator="event_type"),
]

_adapter: TypeAdapter[RideEvent] = TypeAdapter(RideEvent)


def parse_event(payload: str | bytes) -> RideEvent:
    return _adapter.validate_json(payload)
