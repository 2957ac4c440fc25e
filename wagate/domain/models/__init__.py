"""Domain models for the gateway."""

from .conversation import (
    ConversationMessage,
    DeliveryLogEntry,
    DeliveryStatus,
    MediaKind,
    MessageDirection,
    utc_now,
)
from .media_result import (
    MediaDownloadResult,
    MediaInfoResult,
    MediaUploadResult,
    MirroredMedia,
)
from .template import (
    ButtonSubType,
    HeaderFormat,
    Template,
    TemplateButton,
    TemplateHeader,
)
from .tenant import Customer, Tenant, new_id

__all__ = [
    "ButtonSubType",
    "ConversationMessage",
    "Customer",
    "DeliveryLogEntry",
    "DeliveryStatus",
    "HeaderFormat",
    "MediaDownloadResult",
    "MediaInfoResult",
    "MediaKind",
    "MediaUploadResult",
    "MessageDirection",
    "MirroredMedia",
    "Template",
    "TemplateButton",
    "TemplateHeader",
    "Tenant",
    "new_id",
    "utc_now",
]
