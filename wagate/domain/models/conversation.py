"""
Conversation message and delivery log models.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from .tenant import new_id


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MediaKind(str, Enum):
    """Media format of a stored message."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def supersedes(self, other: "DeliveryStatus") -> bool:
        """Provider status callbacks may arrive out of order; never move backward."""
        if self is DeliveryStatus.FAILED:
            return True
        if other is DeliveryStatus.FAILED:
            return False
        return self.rank >= other.rank


_STATUS_RANK = {
    DeliveryStatus.SENT: 1,
    DeliveryStatus.DELIVERED: 2,
    DeliveryStatus.READ: 3,
    DeliveryStatus.FAILED: 4,
}


def utc_now() -> datetime:
    return datetime.now(UTC)


class ConversationMessage(BaseModel):
    """One stored chat message, inbound or outbound."""

    id: str = Field(default_factory=new_id)
    tenant_id: str
    customer_id: str
    direction: MessageDirection
    body: str = ""
    template_payload: str | None = Field(
        None, description="JSON render envelope for template sends"
    )
    media_type: MediaKind | None = None
    media_url: str | None = None
    caption: str | None = None
    provider_message_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    is_read: bool = False


class DeliveryLogEntry(BaseModel):
    """Latest known provider status of one outbound message."""

    tenant_id: str
    provider_message_id: str
    category: str | None = None
    status: DeliveryStatus = DeliveryStatus.SENT
    updated_at: datetime = Field(default_factory=utc_now)
    error: str | None = None
