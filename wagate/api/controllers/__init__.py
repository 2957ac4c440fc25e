"""Request controllers."""

from .webhook_controller import WebhookController

__all__ = ["WebhookController"]
