"""WhatsApp handlers package."""

from .whatsapp_media_handler import WhatsAppMediaHandler

__all__ = ["WhatsAppMediaHandler"]
