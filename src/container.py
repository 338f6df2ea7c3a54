"""
Composition root.

Every long-lived component is built exactly once here and handed to the
API through ``app.state.container``.  Tests build their own container
from in-memory fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine

from src.config import Settings
from src.domain.pricing import FareCalculator
from src.domain.surge import SupplyDemandSurgePolicy
from src.infrastructure.acceptance import RedisAcceptanceGate
from src.infrastructure.database import build_engine, build_session_factory
from src.infrastructure.driver_index import RedisDriverIndex
from src.infrastructure.locks import DistributedLock
from src.infrastructure.notifier import EventNotifier, RedisEventNotifier
from src.infrastructure.redis_client import build_redis
from src.infrastructure.repositories import RideRepository, TenantRepository
from src.infrastructure.routing import GoogleMapsRoutingProvider
from src.services.assignment import AssignmentCoordinator
from src.services.driver_search import NearbyDriverSearch
from src.services.fare_estimator import FareEstimator
from src.services.ride_lifecycle import RideLifecycleManager
from src.services.surge_calculator import SurgeCalculator
from src.workers.dispatcher import DispatchScheduler

logger = logging.getLogger(__name__)


@dataclass
class Container:
    lifecycle: RideLifecycleManager
    coordinator: AssignmentCoordinator
    scheduler: DispatchScheduler
    notifier: EventNotifier
    acceptance: Optional[RedisAcceptanceGate] = None
    driver_index: Optional[RedisDriverIndex] = None
    engine: Optional[AsyncEngine] = None
    redis: Optional[aioredis.Redis] = None
    closeables: list[Any] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.notifier.drain()
        for resource in self.closeables:
            await resource.aclose()
        if self.redis is not None:
            await self.redis.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def build_container(settings: Settings) -> Container:
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    redis = build_redis(settings.redis_url)
    prefix = settings.redis_key_prefix

    rides = RideRepository(session_factory)
    tenants = TenantRepository(session_factory, settings)
    driver_index = RedisDriverIndex(redis, prefix, settings.driver_meta_ttl_seconds)
    notifier = RedisEventNotifier(redis, prefix)

    closeables: list[Any] = []
    routing = None
    if settings.google_maps_api_key:
        routing = GoogleMapsRoutingProvider(
            settings.google_maps_api_key,
            settings.google_maps_base_url,
            settings.routing_timeout_seconds,
        )
        closeables.append(routing)
    else:
        logger.warning("No routing API key configured; all estimates are geodesic")

    surge = SurgeCalculator(
        SupplyDemandSurgePolicy(
            settings.surge_threshold_ratio, settings.max_surge_multiplier
        ),
        rides,
        driver_index,
        h3_resolution=settings.h3_resolution,
        radius_m=settings.surge_radius_meters,
        max_multiplier=settings.max_surge_multiplier,
    )
    estimator = FareEstimator(
        FareCalculator(settings.vat_rate_passenger),
        routing=routing,
        surge=surge,
        urban_speed_kmh=settings.urban_speed_kmh,
    )
    search = NearbyDriverSearch(
        driver_index,
        max_radius_m=settings.max_search_radius_meters,
        max_candidates=settings.max_candidate_drivers,
        urban_speed_kmh=settings.urban_speed_kmh,
    )

    acceptance = None
    if settings.offer_gate_enabled:
        acceptance = RedisAcceptanceGate(redis, notifier, prefix)

    coordinator = AssignmentCoordinator(
        rides,
        search,
        notifier,
        driver_lock=DistributedLock.driver_factory(redis, prefix=prefix),
        gate=acceptance,
        offer_timeout_s=settings.offer_timeout_seconds,
    )
    scheduler = DispatchScheduler(
        coordinator,
        rides,
        lock_client=redis,
        interval_seconds=settings.scheduled_release_interval_seconds,
        lead_minutes=settings.scheduled_release_lead_minutes,
        key_prefix=prefix,
    )
    lifecycle = RideLifecycleManager(
        rides, tenants, estimator, notifier, h3_resolution=settings.h3_resolution
    )

    return Container(
        lifecycle=lifecycle,
        coordinator=coordinator,
        scheduler=scheduler,
        notifier=notifier,
        acceptance=acceptance,
        driver_index=driver_index,
        engine=engine,
        redis=redis,
        closeables=closeables,
    )
