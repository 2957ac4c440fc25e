"""
Redis-backed dedup store (SET NX EX).
"""

from redis.asyncio import Redis

from wagate.domain.interfaces import IDedupStore


class RedisDedupStore(IDedupStore):
    """Claims live as Redis keys expiring after the TTL."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def claim(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self.redis.set(key, "1", nx=True, ex=ttl_seconds))

    async def release(self, key: str) -> None:
        await self.redis.delete(key)
