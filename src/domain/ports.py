"""
Boundary contracts the dispatch core depends on.

Concrete adapters live in ``src.infrastructure``; tests substitute
in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from .entities import (
    CandidateDriver,
    FareEstimate,
    IndexedDriver,
    Location,
    Ride,
    RideRequest,
    Route,
    TenantPricingConfig,
)
from .enums import RideStatus
from .events import RideEvent


class RoutingProvider(Protocol):
    async def route(self, origin: Location, destination: Location) -> Route:
        """Road route; raises ``ProviderUnavailable`` on any failure."""
        ...


class DriverIndex(Protocol):
    async def query_nearby(
        self,
        tenant_id: int,
        center: Location,
        radius_m: float,
        max_results: int,
        matches: Optional[Callable[[IndexedDriver], bool]] = None,
    ) -> list[IndexedDriver]:
        """Nearest drivers passing *matches*, filtered before the cap."""
        ...

    async def count_available(
        self, tenant_id: int, center: Location, radius_m: float
    ) -> int: ...


class TenantStore(Protocol):
    async def get_pricing(self, tenant_id: int) -> Optional[TenantPricingConfig]: ...


class RideStore(Protocol):
    async def create(
        self,
        *,
        tenant_id: int,
        rider_id: int,
        request: RideRequest,
        status: RideStatus,
        estimate: FareEstimate,
        pickup_cell: Optional[str] = None,
    ) -> Ride: ...

    async def get(self, ride_id: int) -> Optional[Ride]: ...

    async def get_scoped(self, ride_id: int, tenant_id: int) -> Optional[Ride]: ...

    async def transition(
        self,
        ride_id: int,
        tenant_id: int,
        expected: RideStatus,
        new_status: RideStatus,
        **values: Any,
    ) -> Optional[Ride]:
        """Compare-and-set; ``None`` when the ride is no longer *expected*."""
        ...

    async def assign_driver(
        self, ride_id: int, tenant_id: int, driver_id: int
    ) -> Optional[int]:
        """Atomic assignment; returns the bound vehicle id or ``None``."""
        ...

    async def count_open_in_cells(self, tenant_id: int, cells: set[str]) -> int: ...

    async def due_scheduled(self, before: datetime, limit: int = 100) -> list[Ride]: ...


class AcceptanceGate(Protocol):
    async def await_acceptance(
        self, ride: Ride, candidate: CandidateDriver, timeout_s: float
    ) -> bool: ...


class SurgeSource(Protocol):
    async def multiplier(self, tenant_id: int, lat: float, lon: float) -> float: ...


class EventSink(Protocol):
    def notify(self, event: RideEvent) -> None:
        """Fire-and-forget; never raises into the caller."""
        ...


class DriverLock(Protocol):
    key: str

    async def acquire(self) -> bool: ...

    async def release(self) -> bool: ...


# (tenant_id, driver_id) -> lock guarding one assignment attempt
DriverLockFactory = Callable[[int, int], DriverLock]
