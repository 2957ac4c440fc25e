"""
Tenant and customer models.

A tenant (agent) owns a WhatsApp sender, a credit balance and a customer pool.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def new_id() -> str:
    return uuid4().hex


class Tenant(BaseModel):
    """Tenant configuration as seen by the gateway."""

    id: str = Field(default_factory=new_id)
    namespace_prefix: str = Field(
        ..., pattern=r"^[a-z0-9_\-]+$", description="Storage and cache namespace"
    )
    provider_access_token: str = Field(..., description="WhatsApp Cloud API token")
    provider_sender_id: str = Field(..., description="WhatsApp phone_number_id")
    credit_balance: Decimal = Field(default=Decimal("0"), ge=0)
    notification_url: str | None = None
    active: bool = True


class Customer(BaseModel):
    """Tenant-scoped customer keyed by canonical E.164 phone."""

    id: str = Field(default_factory=new_id)
    tenant_id: str
    phone: str = Field(..., pattern=r"^\+\d{10,15}$")
    name: str
    ai_enabled: bool = False
    language: str = "english"
    last_inbound_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip() or "Unknown"
