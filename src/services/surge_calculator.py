"""Local supply/demand surge lookup behind a pluggable ``SurgePolicy``."""

from __future__ import annotations

import logging

from src.domain.entities import Location
from src.domain.ports import DriverIndex, RideStore
from src.domain.surge import SurgePolicy, neighbourhood_cells

logger = logging.getLogger(__name__)


class SurgeCalculator:
    def __init__(
        self,
        policy: SurgePolicy,
        rides: RideStore,
        drivers: DriverIndex,
        h3_resolution: int = 7,
        radius_m: float = 3_000.0,
        max_multiplier: float = 3.0,
    ):
        self.policy = policy
        self.rides = rides
        self.drivers = drivers
        self.h3_resolution = h3_resolution
        self.radius_m = radius_m
        self.max_multiplier = max_multiplier

    async def multiplier(self, tenant_id: int, lat: float, lon: float) -> float:
        """Multiplier in [1.0, max]; lookup failures price without surge."""
        try:
            cells = neighbourhood_cells(lat, lon, self.h3_resolution)
            demand = await self.rides.count_open_in_cells(tenant_id, cells)
            supply = await self.drivers.count_available(
                tenant_id, Location(lat, lon), self.radius_m
            )
        except Exception:
            logger.exception("Surge lookup failed for tenant %s; no surge", tenant_id)
            return 1.0

        value = min(self.max_multiplier, max(1.0, self.policy.multiplier(demand, supply)))
        if value > 1.0:
            logger.info(
                "Surge %.2fx for tenant %s (demand=%d, supply=%d)",
                value,
                tenant_id,
                demand,
                supply,
            )
        return value
