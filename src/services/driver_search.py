"""
Nearby-Driver Search
====================

Asks the geo-index for available drivers with the requested vehicle
type (``standard`` matches any vehicle), then ranks by distance, ties by
ETA.  The index applies the filter before its result cap, so busy or
mismatched drivers near the pickup never crowd out a qualifying one.

``standard`` as a wildcard is a policy choice: a rider asking for the
cheapest class may get a comfort car at the standard price.
"""

from __future__ import annotations

import logging

from src.domain import geodesy
from src.domain.entities import CandidateDriver, IndexedDriver, Location
from src.domain.enums import VehicleType
from src.domain.ports import DriverIndex

logger = logging.getLogger(__name__)


class NearbyDriverSearch:
    def __init__(
        self,
        index: DriverIndex,
        max_radius_m: float = 10_000.0,
        max_candidates: int = 20,
        urban_speed_kmh: float = geodesy.DEFAULT_URBAN_SPEED_KMH,
    ):
        self.index = index
        self.max_radius_m = max_radius_m
        self.max_candidates = max_candidates
        self.urban_speed_kmh = urban_speed_kmh

    async def find_nearby(
        self, tenant_id: int, lat: float, lon: float, vehicle_type: str
    ) -> list[CandidateDriver]:
        wanted = VehicleType(vehicle_type)

        def qualifies(hit: IndexedDriver) -> bool:
            if not hit.is_available:
                return False
            return wanted is VehicleType.STANDARD or hit.vehicle.vehicle_type == wanted

        # Filtering happens inside the index, before its result cap
        hits = await self.index.query_nearby(
            tenant_id,
            Location(lat, lon),
            self.max_radius_m,
            self.max_candidates,
            matches=qualifies,
        )

        candidates: list[CandidateDriver] = []
        for hit in hits:
            distance_m = hit.distance_m
            if distance_m is None:
                distance_m = geodesy.distance(
                    lat, lon, hit.location.latitude, hit.location.longitude
                )
            if distance_m > self.max_radius_m:
                continue

            candidates.append(
                CandidateDriver(
                    driver_id=hit.driver_id,
                    location=hit.location,
                    distance_m=distance_m,
                    eta_s=geodesy.travel_time_seconds(distance_m, self.urban_speed_kmh),
                    rating=hit.rating,
                    vehicle=hit.vehicle,
                )
            )

        candidates.sort(key=lambda c: (c.distance_m, c.eta_s))
        logger.debug(
            "Found %d candidate drivers for tenant %s near (%.5f, %.5f)",
            len(candidates),
            tenant_id,
            lat,
            lon,
        )
        return candidates[: self.max_candidates]
