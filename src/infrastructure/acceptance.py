"""
Driver offer acceptance over Redis lists.

The coordinator publishes a ``ride.offered`` event to the driver and
blocks on ``BLPOP`` for at most the offer window.  The driver app (via
the API) answers with ``respond`` which pushes ``accept``/``decline``
onto the same key.  Timeout and decline both mean "next candidate".
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from .notifier import EventNotifier
from src.domain.entities import CandidateDriver, Ride
from src.domain.events import RideOffered

logger = logging.getLogger(__name__)

ACCEPT = "accept"
DECLINE = "decline"


class RedisAcceptanceGate:
    def __init__(
        self, client: aioredis.Redis, notifier: EventNotifier, key_prefix: str = ""
    ):
        self.redis = client
        self.notifier = notifier
        self.key_prefix = key_prefix

    def reply_key(self, tenant_id: int, ride_id: int, driver_id: int) -> str:
        return f"{self.key_prefix}offers:{tenant_id}:{ride_id}:{driver_id}"

    async def await_acceptance(
        self, ride: Ride, candidate: CandidateDriver, timeout_s: float
    ) -> bool:
        key = self.reply_key(ride.tenant_id, ride.id, candidate.driver_id)
        self.notifier.notify(
            RideOffered(
                tenant_id=ride.tenant_id,
                ride_id=ride.id,
                driver_id=candidate.driver_id,
                estimated_fare=ride.estimated_fare,
                pickup_eta_s=candidate.eta_s,
                expires_at=datetime.now(timezone.utc) + timedelta(seconds=timeout_s),
            )
        )
        reply = await self.redis.blpop([key], timeout=timeout_s)
        if reply is None:
            logger.info(
                "Offer for ride %s to driver %s timed out", ride.id, candidate.driver_id
            )
            return False
        _, answer = reply
        return answer == ACCEPT

    async def respond(
        self, tenant_id: int, ride_id: int, driver_id: int, accept: bool
    ) -> None:
        key = self.reply_key(tenant_id, ride_id, driver_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.rpush(key, ACCEPT if accept else DECLINE)
        pipe.expire(key, 60)
        await pipe.execute()
