"""
Redis conversation cache invalidation.
"""

from redis.asyncio import Redis

from wagate.core.logging.logger import get_logger
from wagate.domain.interfaces import IConversationCache
from wagate.persistence.key_factory import KeyFactory, default_key_factory


class RedisConversationCache(IConversationCache):
    def __init__(self, redis: Redis, key_factory: KeyFactory = default_key_factory):
        self.redis = redis
        self.keys = key_factory
        self.logger = get_logger(__name__)

    async def invalidate(self, tenant_id: str, customer_id: str) -> None:
        removed = await self.redis.delete(
            self.keys.chat_list(tenant_id),
            self.keys.recent_messages(tenant_id, customer_id),
        )
        self.logger.debug(f"Invalidated {removed} cached conversation keys")
