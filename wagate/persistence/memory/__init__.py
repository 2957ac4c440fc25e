"""In-memory backends for tests and local runs."""

from .conversation_cache import InMemoryConversationCache
from .dedup_store import InMemoryDedupStore
from .object_storage import InMemoryObjectStorage
from .repository import InMemoryGatewayRepository

__all__ = [
    "InMemoryConversationCache",
    "InMemoryDedupStore",
    "InMemoryGatewayRepository",
    "InMemoryObjectStorage",
]
