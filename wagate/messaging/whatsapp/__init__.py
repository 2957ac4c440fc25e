"""WhatsApp Cloud API integration."""
