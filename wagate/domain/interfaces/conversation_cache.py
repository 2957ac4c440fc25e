"""
Conversation cache invalidation interface.

Chat list and recent-message views are cached by readers outside the gateway;
the gateway only invalidates them after storing a message.
"""

from abc import ABC, abstractmethod


class IConversationCache(ABC):
    @abstractmethod
    async def invalidate(self, tenant_id: str, customer_id: str) -> None:
        """Drop the tenant chat list and the customer's recent messages."""
        pass
