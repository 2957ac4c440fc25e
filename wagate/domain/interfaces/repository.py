"""
Tenant-scoped gateway repository interface.

Every read and write of tenant data takes the tenant id as an argument; the
backing store decides how tenants are partitioned.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from wagate.domain.models import (
    ConversationMessage,
    Customer,
    DeliveryLogEntry,
    Template,
    Tenant,
)


class IGatewayRepository(ABC):
    """Persistence contract shared by the outbound and inbound paths."""

    # ---- tenants ----------------------------------------------------------
    @abstractmethod
    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        """Get an active tenant by id."""
        pass

    @abstractmethod
    async def get_tenant_by_sender(self, sender_id: str) -> Tenant | None:
        """Get an active tenant by its WhatsApp phone_number_id."""
        pass

    @abstractmethod
    async def save_tenant(self, tenant: Tenant) -> Tenant:
        """Insert or replace a tenant."""
        pass

    # ---- customers --------------------------------------------------------
    @abstractmethod
    async def get_customer_by_phone(
        self, tenant_id: str, phone: str
    ) -> Customer | None:
        """Get a customer by canonical E.164 phone within the tenant."""
        pass

    @abstractmethod
    async def get_or_create_customer(
        self, tenant_id: str, phone: str, name: str
    ) -> Customer:
        """Return the existing customer or create one with default settings."""
        pass

    @abstractmethod
    async def save_customer(self, customer: Customer) -> Customer:
        """Insert or replace a customer."""
        pass

    @abstractmethod
    async def touch_last_inbound(
        self, tenant_id: str, customer_id: str, at: datetime
    ) -> bool:
        """
        Move last_inbound_at forward to `at`.

        Returns:
            True if the anchor changed, False if `at` was not newer
        """
        pass

    # ---- templates --------------------------------------------------------
    @abstractmethod
    async def get_active_template_by_category(
        self, tenant_id: str, category: str
    ) -> Template | None:
        """Get the tenant's active template for a category."""
        pass

    @abstractmethod
    async def get_template_by_name(
        self, tenant_id: str, name: str, language_code: str | None = None
    ) -> Template | None:
        """Get an active template by name (and language when given)."""
        pass

    @abstractmethod
    async def save_template(self, template: Template) -> Template:
        """Insert or replace a template."""
        pass

    # ---- conversation -----------------------------------------------------
    @abstractmethod
    async def insert_message(self, message: ConversationMessage) -> ConversationMessage:
        """Append a conversation message."""
        pass

    @abstractmethod
    async def list_messages(
        self, tenant_id: str, customer_id: str
    ) -> list[ConversationMessage]:
        """List a customer's messages ordered by timestamp."""
        pass

    # ---- delivery log -----------------------------------------------------
    @abstractmethod
    async def upsert_delivery_log(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        """
        Create or update the entry for entry.provider_message_id.

        Status never moves backward (see DeliveryStatus.supersedes); the
        stored entry is returned.
        """
        pass

    @abstractmethod
    async def get_delivery_log(
        self, tenant_id: str, provider_message_id: str
    ) -> DeliveryLogEntry | None:
        """Get the delivery log entry for a provider message id."""
        pass
