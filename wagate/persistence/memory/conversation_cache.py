"""
In-memory conversation cache.
"""

import logging
from collections import deque

from wagate.domain.interfaces import IConversationCache
from wagate.persistence.key_factory import KeyFactory, default_key_factory

logger = logging.getLogger("wagate.persistence.memory")


class InMemoryConversationCache(IConversationCache):
    """Holds cached views by key; invalidation drops them."""

    def __init__(self, key_factory: KeyFactory = default_key_factory):
        self.keys = key_factory
        self.entries: dict[str, object] = {}
        self.invalidated: deque[str] = deque(maxlen=1000)

    async def invalidate(self, tenant_id: str, customer_id: str) -> None:
        for key in (
            self.keys.chat_list(tenant_id),
            self.keys.recent_messages(tenant_id, customer_id),
        ):
            self.entries.pop(key, None)
            self.invalidated.append(key)
        logger.debug(f"Invalidated conversation cache for {tenant_id}/{customer_id}")
