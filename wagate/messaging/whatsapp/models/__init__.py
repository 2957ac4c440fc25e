"""WhatsApp models package."""

from .send_models import DispatchResult, SendMessageRequest, SendMessageResponse
from .template_models import (
    CurrencyValue,
    DateTimeValue,
    MediaHeader,
    MediaHeaderType,
    TemplateButtonParam,
    TemplateParameter,
    TemplateParameterType,
)
from .webhook_models import WebhookEnvelope, WebhookValue

__all__ = [
    "CurrencyValue",
    "DateTimeValue",
    "DispatchResult",
    "MediaHeader",
    "MediaHeaderType",
    "SendMessageRequest",
    "SendMessageResponse",
    "TemplateButtonParam",
    "TemplateParameter",
    "TemplateParameterType",
    "WebhookEnvelope",
    "WebhookValue",
]
