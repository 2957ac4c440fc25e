"""
Webhook event dedup store interface.
"""

from abc import ABC, abstractmethod


class IDedupStore(ABC):
    """Short-lived record of processed provider event ids."""

    @abstractmethod
    async def claim(self, key: str, ttl_seconds: int) -> bool:
        """
        Atomically mark key as processed.

        Returns:
            True if this caller claimed the key, False if it was already claimed
        """
        pass

    @abstractmethod
    async def release(self, key: str) -> None:
        """Forget a claim so a redelivery can be processed again."""
        pass
