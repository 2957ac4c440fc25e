from __future__ import annotations

from pydantic import BaseModel, Field


class KeyFactory(BaseModel):
    """Pure stateless helpers for gateway cache and dedup keys."""

    chat_list_prefix: str = Field(default="chat_list")
    recent_messages_prefix: str = Field(default="recent_messages")
    dedup_prefix: str = Field(default="wa_event")

    # ---- builders ---------------------------------------------------------
    def chat_list(self, tenant: str) -> str:
        return f"{self.chat_list_prefix}:{tenant}"

    def recent_messages(self, tenant: str, customer_id: str) -> str:
        return f"{self.recent_messages_prefix}:{tenant}:{customer_id}"

    def inbound_event(self, tenant: str, provider_message_id: str) -> str:
        safe_id = provider_message_id.replace(":", "_")
        return f"{self.dedup_prefix}:{tenant}:{safe_id}"


# Default instance for global use
default_key_factory = KeyFactory()
