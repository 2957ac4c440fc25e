"""
In-memory dedup store with TTL.
"""

import asyncio
import time

from wagate.domain.interfaces import IDedupStore


class InMemoryDedupStore(IDedupStore):
    """
    Process-local claim map.

    Expired claims are purged lazily on every claim call, so the map stays
    bounded by the number of events seen within one TTL window.
    """

    def __init__(self):
        self._claims: dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def claim(self, key: str, ttl_seconds: int) -> bool:
        now = time.monotonic()
        async with self._lock:
            self._purge_expired(now)
            if key in self._claims:
                return False
            self._claims[key] = now + ttl_seconds
            return True

    async def release(self, key: str) -> None:
        async with self._lock:
            self._claims.pop(key, None)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, expires_at in self._claims.items() if expires_at <= now]
        for key in expired:
            del self._claims[key]
