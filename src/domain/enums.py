"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "requested"
    SEARCHING = "searching"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_ARRIVING = "driver_arriving"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED_BY_RIDER = "cancelled_by_rider"
    CANCELLED_BY_DRIVER = "cancelled_by_driver"
    NO_DRIVERS_AVAILABLE = "no_drivers_available"


# Reachable from every state before the trip starts
_SIDE_EXITS = {
    RideStatus.CANCELLED_BY_RIDER,
    RideStatus.CANCELLED_BY_DRIVER,
    RideStatus.NO_DRIVERS_AVAILABLE,
}

# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {RideStatus.SEARCHING} | _SIDE_EXITS,
    RideStatus.SEARCHING: {RideStatus.DRIVER_ASSIGNED} | _SIDE_EXITS,
    RideStatus.DRIVER_ASSIGNED: {RideStatus.DRIVER_ARRIVING} | _SIDE_EXITS,
    RideStatus.DRIVER_ARRIVING: {RideStatus.ARRIVED} | _SIDE_EXITS,
    RideStatus.ARRIVED: {RideStatus.IN_PROGRESS} | _SIDE_EXITS,
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED_BY_RIDER: set(),
    RideStatus.CANCELLED_BY_DRIVER: set(),
    RideStatus.NO_DRIVERS_AVAILABLE: set(),
}

# A driver bound to a ride in one of these states is not free for another
DRIVER_BUSY_STATUSES = frozenset(
    {
        RideStatus.DRIVER_ASSIGNED,
        RideStatus.DRIVER_ARRIVING,
        RideStatus.ARRIVED,
        RideStatus.IN_PROGRESS,
    }
)


class VehicleType(str, enum.Enum):
    STANDARD = "standard"
    COMFORT = "comfort"
    XL = "xl"
    ACCESSIBLE = "accessible"
    ELECTRIC = "electric"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    MOBILEPAY = "mobilepay"
    CASH = "cash"


class CancelledBy(str, enum.Enum):
    RIDER = "rider"
    DRIVER = "driver"
    SYSTEM = "system"


CANCELLATION_STATUS: dict[CancelledBy, RideStatus] = {
    CancelledBy.RIDER: RideStatus.CANCELLED_BY_RIDER,
    CancelledBy.DRIVER: RideStatus.CANCELLED_BY_DRIVER,
    CancelledBy.SYSTEM: RideStatus.NO_DRIVERS_AVAILABLE,
}
