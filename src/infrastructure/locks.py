"""
Redis-based distributed lock.

Two users:

* the assignment coordinator takes a short per-driver lock around each
  assignment attempt, so racing dispatches of *different* rides cannot
  both bind the same driver;
* the scheduled-ride release loop takes a cycle lock so only one process
  releases rides at a time.

Implementation uses SET NX EX for acquire and a Lua script for atomic
check-and-delete on release.
"""

from __future__ import annotations

import uuid
from typing import Callable

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    pass


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 30,
        prefix: str = "",
    ):
        self.redis = client
        self.key = f"{prefix}lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    @classmethod
    def for_driver(
        cls,
        client: aioredis.Redis,
        tenant_id: int,
        driver_id: int,
        ttl_seconds: int = 10,
        prefix: str = "",
    ) -> "DistributedLock":
        return cls(client, f"{tenant_id}:driver:{driver_id}", ttl_seconds, prefix)

    @classmethod
    def driver_factory(
        cls, client: aioredis.Redis, ttl_seconds: int = 10, prefix: str = ""
    ) -> Callable[[int, int], "DistributedLock"]:
        """Per-driver lock builder for the assignment coordinator."""

        def build(tenant_id: int, driver_id: int) -> "DistributedLock":
            return cls.for_driver(client, tenant_id, driver_id, ttl_seconds, prefix)

        return build

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> bool:
        """Release only if we still own the lock (atomic via Lua)."""
        return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))

    # context-manager support
    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
