"""Redis backends."""

from .conversation_cache import RedisConversationCache
from .dedup_store import RedisDedupStore
from .redis_client import RedisClient

__all__ = ["RedisClient", "RedisConversationCache", "RedisDedupStore"]
