"""WhatsApp client package."""

from .whatsapp_client import WhatsAppClient

__all__ = ["WhatsAppClient"]
