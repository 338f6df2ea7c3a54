"""
Fare Estimator
==============

1. Route the trip with the configured provider.  On ``ProviderUnavailable``
   (or with no provider configured) fall back to the great-circle
   distance at an assumed urban speed.  The caller gets the same shape
   either way; ``route_source`` and a WARNING log mark the degraded path.
2. Look up surge for the pickup when the tenant has it enabled.
3. Hand the numbers to ``FareCalculator``.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.domain import geodesy
from src.domain.entities import FareEstimate, Location, Route, TenantPricingConfig
from src.domain.exceptions import InvalidTenant, ProviderUnavailable
from src.domain.ports import RoutingProvider, SurgeSource
from src.domain.pricing import FareCalculator

logger = logging.getLogger(__name__)

PROVIDER = "provider"
GEODESIC = "geodesic"
ACTUAL = "actual"


class FareEstimator:
    def __init__(
        self,
        calculator: FareCalculator,
        routing: Optional[RoutingProvider] = None,
        surge: Optional[SurgeSource] = None,
        urban_speed_kmh: float = geodesy.DEFAULT_URBAN_SPEED_KMH,
    ):
        self.calculator = calculator
        self.routing = routing
        self.surge = surge
        self.urban_speed_kmh = urban_speed_kmh

    def geodesic_route(self, pickup: Location, dropoff: Location) -> Route:
        distance_m = geodesy.distance(
            pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude
        )
        return Route(
            distance_m=distance_m,
            duration_s=geodesy.travel_time_seconds(distance_m, self.urban_speed_kmh),
        )

    async def resolve_route(
        self, pickup: Location, dropoff: Location
    ) -> tuple[Route, str]:
        if self.routing is None:
            logger.debug("No routing provider configured; geodesic estimate")
            return self.geodesic_route(pickup, dropoff), GEODESIC

        try:
            return await self.routing.route(pickup, dropoff), PROVIDER
        except ProviderUnavailable as exc:
            logger.warning("Routing provider unavailable, geodesic fallback: %s", exc)
            return self.geodesic_route(pickup, dropoff), GEODESIC

    async def estimate(
        self,
        config: Optional[TenantPricingConfig],
        pickup: Location,
        dropoff: Location,
        vehicle_type: str,
    ) -> FareEstimate:
        if config is None:
            raise InvalidTenant("Tenant pricing configuration not found")
        config.validate()

        route, source = await self.resolve_route(pickup, dropoff)

        surge_multiplier = 1.0
        if config.surge_enabled and self.surge is not None:
            surge_multiplier = await self.surge.multiplier(
                config.tenant_id, pickup.latitude, pickup.longitude
            )

        return self.calculator.calculate(
            config,
            route.distance_m,
            route.duration_s,
            vehicle_type,
            surge_multiplier=surge_multiplier,
            route_source=source,
        )

    def final_fare(
        self,
        config: Optional[TenantPricingConfig],
        distance_m: float,
        duration_s: int,
        vehicle_type: str,
        surge_multiplier: float = 1.0,
    ) -> FareEstimate:
        """Fare from driver-reported trip metrics; no routing, no fresh surge."""
        if config is None:
            raise InvalidTenant("Tenant pricing configuration not found")
        config.validate()
        return self.calculator.calculate(
            config,
            distance_m,
            duration_s,
            vehicle_type,
            surge_multiplier=surge_multiplier,
            route_source=ACTUAL,
        )
