"""
Redis GEO-based driver index.

Architecture:
- Driver positions live in one GEO sorted set per tenant
  (``{prefix}drivers:{tenant}:locations``) for fast GEOSEARCH queries.
- Driver metadata (vehicle, rating, availability) lives in a hash per
  driver with a TTL, so drivers that stop reporting drop out of results
  even before their GEO member is cleaned up.
- Keys are tenant-prefixed; one tenant can never see another's drivers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

import redis.asyncio as aioredis

from src.domain.entities import IndexedDriver, Location, VehicleDescriptor

logger = logging.getLogger(__name__)


class RedisDriverIndex:
    def __init__(
        self,
        client: aioredis.Redis,
        key_prefix: str = "",
        meta_ttl_seconds: int = 120,
        meta_batch_size: int = 100,
    ):
        self.redis = client
        self.key_prefix = key_prefix
        self.meta_ttl = meta_ttl_seconds
        self.meta_batch_size = meta_batch_size

    # ── Keys ──────────────────────────────────────────────────────

    def locations_key(self, tenant_id: int) -> str:
        return f"{self.key_prefix}drivers:{tenant_id}:locations"

    def meta_key(self, tenant_id: int, driver_id: int | str) -> str:
        return f"{self.key_prefix}drivers:{tenant_id}:meta:{driver_id}"

    # ── Writes (driver app / location service) ────────────────────

    async def update_location(
        self,
        tenant_id: int,
        driver_id: int,
        location: Location,
        vehicle: VehicleDescriptor,
        rating: float = 5.0,
        is_available: bool = True,
    ) -> None:
        pipe = self.redis.pipeline(transaction=True)
        pipe.geoadd(
            self.locations_key(tenant_id),
            (location.longitude, location.latitude, str(driver_id)),
        )
        meta_key = self.meta_key(tenant_id, driver_id)
        pipe.hset(
            meta_key,
            mapping={
                "vehicle_type": vehicle.vehicle_type,
                "make": vehicle.make,
                "model": vehicle.model,
                "color": vehicle.color,
                "registration_number": vehicle.registration_number,
                "rating": str(rating),
                "is_available": "1" if is_available else "0",
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        pipe.expire(meta_key, self.meta_ttl)
        await pipe.execute()
        logger.debug("Driver %s location updated (tenant=%s)", driver_id, tenant_id)

    async def set_availability(
        self, tenant_id: int, driver_id: int, is_available: bool
    ) -> None:
        await self.redis.hset(
            self.meta_key(tenant_id, driver_id),
            "is_available",
            "1" if is_available else "0",
        )

    async def remove_driver(self, tenant_id: int, driver_id: int) -> None:
        pipe = self.redis.pipeline(transaction=True)
        pipe.zrem(self.locations_key(tenant_id), str(driver_id))
        pipe.delete(self.meta_key(tenant_id, driver_id))
        await pipe.execute()

    # ── Queries ───────────────────────────────────────────────────

    async def _search(
        self,
        tenant_id: int,
        center: Location,
        radius_m: float,
        count: Optional[int],
    ) -> list:
        return await self.redis.geosearch(
            self.locations_key(tenant_id),
            longitude=center.longitude,
            latitude=center.latitude,
            radius=radius_m,
            unit="m",
            sort="ASC",
            count=count,
            withdist=True,
            withcoord=True,
        )

    async def _load_meta(self, tenant_id: int, members: list[str]) -> list[dict]:
        if not members:
            return []
        pipe = self.redis.pipeline(transaction=False)
        for member in members:
            pipe.hgetall(self.meta_key(tenant_id, member))
        return await pipe.execute()

    @staticmethod
    def _to_driver(member, dist, coord, meta: dict) -> IndexedDriver:
        lon, lat = coord
        return IndexedDriver(
            driver_id=int(member),
            location=Location(float(lat), float(lon)),
            vehicle=VehicleDescriptor(
                vehicle_type=meta.get("vehicle_type", "standard"),
                make=meta.get("make", ""),
                model=meta.get("model", ""),
                color=meta.get("color", ""),
                registration_number=meta.get("registration_number", ""),
            ),
            rating=float(meta.get("rating") or 5.0),
            is_available=meta.get("is_available") == "1",
            distance_m=float(dist),
        )

    async def query_nearby(
        self,
        tenant_id: int,
        center: Location,
        radius_m: float,
        max_results: int,
        matches: Optional[Callable[[IndexedDriver], bool]] = None,
    ) -> list[IndexedDriver]:
        """
        Nearest drivers within *radius_m* that satisfy *matches*.

        The GEO search covers the whole radius; metadata is loaded in
        batches, nearest first, until *max_results* drivers match.  A
        crowd of busy drivers close to the pickup therefore cannot hide
        a free one further out.
        """
        hits = await self._search(tenant_id, center, radius_m, None)

        drivers: list[IndexedDriver] = []
        for offset in range(0, len(hits), self.meta_batch_size):
            batch = hits[offset : offset + self.meta_batch_size]
            metas = await self._load_meta(tenant_id, [str(h[0]) for h in batch])
            for (member, dist, coord), meta in zip(batch, metas):
                if not meta:
                    continue  # metadata expired: driver stopped reporting
                driver = self._to_driver(member, dist, coord, meta)
                if matches is not None and not matches(driver):
                    continue
                drivers.append(driver)
                if len(drivers) >= max_results:
                    break
            if len(drivers) >= max_results:
                break

        logger.debug(
            "Geo-index returned %d of %d drivers (tenant=%s, radius=%.0fm)",
            len(drivers),
            len(hits),
            tenant_id,
            radius_m,
        )
        return drivers

    async def count_available(
        self, tenant_id: int, center: Location, radius_m: float
    ) -> int:
        hits = await self._search(tenant_id, center, radius_m, None)
        metas = await self._load_meta(tenant_id, [str(h[0]) for h in hits])
        return sum(1 for meta in metas if meta and meta.get("is_available") == "1")
