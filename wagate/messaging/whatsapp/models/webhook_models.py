"""
WhatsApp webhook container models.

Only the envelope is validated strictly. Individual messages and statuses
stay as raw dicts so one malformed item never rejects the whole delivery;
the inbound processor parses them one at a time.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WebhookMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    display_phone_number: str | None = None
    phone_number_id: str = Field(..., description="Tenant's provider sender id")


class WebhookProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None


class WebhookContact(BaseModel):
    model_config = ConfigDict(extra="ignore")

    wa_id: str | None = None
    profile: WebhookProfile | None = None


class WebhookValue(BaseModel):
    """
    The core value object containing webhook payload data.

    Either 'messages' or 'statuses' is normally present.
    """

    model_config = ConfigDict(extra="ignore")

    messaging_product: str | None = None
    metadata: WebhookMetadata | None = None
    contacts: list[WebhookContact] = Field(default_factory=list)
    messages: list[dict[str, Any]] = Field(default_factory=list)
    statuses: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("contacts", "messages", "statuses", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    def contact_name(self, wa_id: str) -> str | None:
        """Profile name of the contact matching wa_id, else the first contact's."""
        for contact in self.contacts:
            if contact.wa_id == wa_id and contact.profile and contact.profile.name:
                return contact.profile.name
        if self.contacts and self.contacts[0].profile:
            return self.contacts[0].profile.name
        return None


class WebhookChange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    field: str | None = None
    value: WebhookValue


class WebhookEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    changes: list[WebhookChange] = Field(default_factory=list)


class WebhookEnvelope(BaseModel):
    """Top-level WhatsApp Business Account webhook payload."""

    model_config = ConfigDict(extra="ignore")

    object: Literal["whatsapp_business_account"]
    entry: list[WebhookEntry] = Field(default_factory=list)

    def values(self) -> list[WebhookValue]:
        return [change.value for entry in self.entry for change in entry.changes]
