"""Collaborator interfaces consumed by the gateway."""

from .conversation_cache import IConversationCache
from .credit_ledger import ICreditLedger
from .dedup_store import IDedupStore
from .object_storage import IObjectStorage
from .repository import IGatewayRepository

__all__ = [
    "IConversationCache",
    "ICreditLedger",
    "IDedupStore",
    "IGatewayRepository",
    "IObjectStorage",
]
