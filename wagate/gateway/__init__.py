"""Gateway components: policy, rendering, media mirror, composer, inbound processor."""

from .composer import OutboundComposer
from .inbound import InboundWebhookProcessor, WebhookProcessingSummary, classify_message
from .media_mirror import MediaMirror, classify_mime
from .phone import normalize_phone
from .policy import PolicyDecision, SessionWindowPolicy
from .services import GatewayServices, build_services
from .templates import RenderedTemplate, TemplateRenderer

__all__ = [
    "GatewayServices",
    "InboundWebhookProcessor",
    "MediaMirror",
    "OutboundComposer",
    "PolicyDecision",
    "RenderedTemplate",
    "SessionWindowPolicy",
    "TemplateRenderer",
    "WebhookProcessingSummary",
    "build_services",
    "classify_message",
    "classify_mime",
    "normalize_phone",
]
