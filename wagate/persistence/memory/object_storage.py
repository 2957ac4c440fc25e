"""
In-memory object storage.
"""

import asyncio

from wagate.domain.interfaces import IObjectStorage


class InMemoryObjectStorage(IObjectStorage):
    """Dict-backed object store; objects vanish with the process."""

    def __init__(self, public_base_url: str = "memory://media"):
        self.public_base_url = public_base_url.rstrip("/")
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._lock = asyncio.Lock()

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        async with self._lock:
            self._objects[key] = (bytes(data), content_type)
        return self.public_url(key)

    async def get_object(self, key: str) -> bytes | None:
        stored = self._objects.get(key)
        return stored[0] if stored else None

    async def delete_object(self, key: str) -> bool:
        async with self._lock:
            return self._objects.pop(key, None) is not None

    @property
    def keys(self) -> list[str]:
        return sorted(self._objects)
