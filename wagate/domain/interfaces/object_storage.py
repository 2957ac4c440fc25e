"""
Durable object storage interface for mirrored media.
"""

from abc import ABC, abstractmethod


class IObjectStorage(ABC):
    """Key-addressed blob store that exposes objects under a public URL."""

    @abstractmethod
    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key and return the public URL."""
        pass

    @abstractmethod
    async def get_object(self, key: str) -> bytes | None:
        """Return the stored bytes, or None if the key does not exist."""
        pass

    @abstractmethod
    async def delete_object(self, key: str) -> bool:
        """Delete the object; returns False when it did not exist."""
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL for a key."""
        pass
