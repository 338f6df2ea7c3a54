"""
Fire-and-forget event publishing.

``notify`` schedules the publish on the running loop and returns at
once; publish failures are logged, never raised into dispatch.  Each
event kind fans out to its audience channels:

* ``{prefix}rides:{tenant}:{ride}``      -- the rider's app
* ``{prefix}drivers:{tenant}:{driver}``  -- the driver's app
* ``{prefix}dispatch:{tenant}``          -- dispatcher dashboards
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import redis.asyncio as aioredis

from src.domain.events import (
    NoDriversAvailable,
    RideAssigned,
    RideCancelled,
    RideCompleted,
    RideEvent,
    RideOffered,
    RideRequested,
    RideStatusChanged,
)

logger = logging.getLogger(__name__)


def channels_for(event: RideEvent, prefix: str = "") -> list[str]:
    rider = f"{prefix}rides:{event.tenant_id}:{event.ride_id}"
    dispatch = f"{prefix}dispatch:{event.tenant_id}"

    match event:
        case RideRequested():
            return [dispatch]
        case RideOffered(driver_id=driver_id):
            return [f"{prefix}drivers:{event.tenant_id}:{driver_id}"]
        case RideAssigned(driver_id=driver_id):
            return [rider, f"{prefix}drivers:{event.tenant_id}:{driver_id}", dispatch]
        case RideStatusChanged() | RideCompleted() | RideCancelled() | NoDriversAvailable():
            return [rider, dispatch]
        case _:
            raise TypeError(f"Unhandled event type: {type(event).__name__}")


class EventNotifier(ABC):
    def __init__(self) -> None:
        self._pending: set[asyncio.Task] = set()

    def notify(self, event: RideEvent) -> None:
        task = asyncio.get_running_loop().create_task(self._publish_logged(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish_logged(self, event: RideEvent) -> None:
        try:
            await self.publish(event)
        except Exception:
            logger.exception(
                "Failed to publish %s for ride %s", event.event_type, event.ride_id
            )

    async def drain(self) -> None:
        """Wait for in-flight publishes (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    @abstractmethod
    async def publish(self, event: RideEvent) -> None: ...


class RedisEventNotifier(EventNotifier):
    def __init__(self, client: aioredis.Redis, key_prefix: str = ""):
        super().__init__()
        self.redis = client
        self.key_prefix = key_prefix

    async def publish(self, event: RideEvent) -> None:
        payload = event.model_dump_json()
        pipe = self.redis.pipeline(transaction=False)
        for channel in channels_for(event, self.key_prefix):
            pipe.publish(channel, payload)
        await pipe.execute()
