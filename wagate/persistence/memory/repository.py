"""
In-memory gateway repository.

Used by tests and single-process local runs. Data is partitioned per tenant in
nested dicts, except the delivery log which is keyed by provider message id
alone. One asyncio.Lock serializes writers.
"""

import asyncio
import logging
from datetime import datetime

from wagate.core.errors import InsufficientFundsError, StorageError
from wagate.domain.interfaces import ICreditLedger, IGatewayRepository
from wagate.domain.models import (
    ConversationMessage,
    Customer,
    DeliveryLogEntry,
    Template,
    Tenant,
)

logger = logging.getLogger("wagate.persistence.memory")


class InMemoryGatewayRepository(IGatewayRepository, ICreditLedger):
    """
    Dict-backed repository and credit ledger.

    Storage Structure:
    {
        tenants:   {tenant_id: Tenant},
        customers: {tenant_id: {customer_id: Customer}},
        templates: {tenant_id: {template_id: Template}},
        messages:  {tenant_id: [ConversationMessage]},
        delivery:  {provider_message_id: DeliveryLogEntry},
    }
    """

    def __init__(self):
        self._tenants: dict[str, Tenant] = {}
        self._customers: dict[str, dict[str, Customer]] = {}
        self._templates: dict[str, dict[str, Template]] = {}
        self._messages: dict[str, list[ConversationMessage]] = {}
        self._delivery: dict[str, DeliveryLogEntry] = {}
        self._lock = asyncio.Lock()

    # ---- tenants ----------------------------------------------------------
    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        tenant = self._tenants.get(tenant_id)
        if tenant is None or not tenant.active:
            return None
        return tenant.model_copy()

    async def get_tenant_by_sender(self, sender_id: str) -> Tenant | None:
        for tenant in self._tenants.values():
            if tenant.active and tenant.provider_sender_id == sender_id:
                return tenant.model_copy()
        return None

    async def save_tenant(self, tenant: Tenant) -> Tenant:
        async with self._lock:
            self._tenants[tenant.id] = tenant.model_copy()
        return tenant

    # ---- customers --------------------------------------------------------
    async def get_customer_by_phone(
        self, tenant_id: str, phone: str
    ) -> Customer | None:
        for customer in self._customers.get(tenant_id, {}).values():
            if customer.phone == phone:
                return customer.model_copy()
        return None

    async def get_or_create_customer(
        self, tenant_id: str, phone: str, name: str
    ) -> Customer:
        async with self._lock:
            pool = self._customers.setdefault(tenant_id, {})
            for customer in pool.values():
                if customer.phone == phone:
                    return customer.model_copy()
            customer = Customer(tenant_id=tenant_id, phone=phone, name=name)
            pool[customer.id] = customer
            logger.info(f"Created customer {customer.id} for tenant {tenant_id}")
            return customer.model_copy()

    async def save_customer(self, customer: Customer) -> Customer:
        async with self._lock:
            self._customers.setdefault(customer.tenant_id, {})[customer.id] = (
                customer.model_copy()
            )
        return customer

    async def touch_last_inbound(
        self, tenant_id: str, customer_id: str, at: datetime
    ) -> bool:
        async with self._lock:
            customer = self._customers.get(tenant_id, {}).get(customer_id)
            if customer is None:
                return False
            if customer.last_inbound_at is not None and at <= customer.last_inbound_at:
                return False
            customer.last_inbound_at = at
            return True

    # ---- templates --------------------------------------------------------
    async def get_active_template_by_category(
        self, tenant_id: str, category: str
    ) -> Template | None:
        templates = sorted(self._templates.get(tenant_id, {}).values(), key=lambda t: t.name)
        for template in templates:
            if template.active and template.category == category:
                return template.model_copy(deep=True)
        return None

    async def get_template_by_name(
        self, tenant_id: str, name: str, language_code: str | None = None
    ) -> Template | None:
        for template in self._templates.get(tenant_id, {}).values():
            if not template.active or template.name != name:
                continue
            if language_code and template.language_code != language_code:
                continue
            return template.model_copy(deep=True)
        return None

    async def save_template(self, template: Template) -> Template:
        async with self._lock:
            self._templates.setdefault(template.tenant_id, {})[template.id] = (
                template.model_copy(deep=True)
            )
        return template

    # ---- conversation -----------------------------------------------------
    async def insert_message(self, message: ConversationMessage) -> ConversationMessage:
        async with self._lock:
            self._messages.setdefault(message.tenant_id, []).append(message.model_copy())
        return message

    async def list_messages(
        self, tenant_id: str, customer_id: str
    ) -> list[ConversationMessage]:
        rows = [
            m.model_copy()
            for m in self._messages.get(tenant_id, [])
            if m.customer_id == customer_id
        ]
        return sorted(rows, key=lambda m: m.timestamp)

    # ---- delivery log -----------------------------------------------------
    async def upsert_delivery_log(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        async with self._lock:
            current = self._delivery.get(entry.provider_message_id)
            if current is not None and current.tenant_id != entry.tenant_id:
                raise StorageError(
                    f"Provider message {entry.provider_message_id} belongs to another tenant"
                )
            if current is not None and not entry.status.supersedes(current.status):
                return current.model_copy()
            merged = entry.model_copy()
            if current is not None and merged.category is None:
                merged.category = current.category
            self._delivery[entry.provider_message_id] = merged
            return merged.model_copy()

    async def get_delivery_log(
        self, tenant_id: str, provider_message_id: str
    ) -> DeliveryLogEntry | None:
        entry = self._delivery.get(provider_message_id)
        if entry is None or entry.tenant_id != tenant_id:
            return None
        return entry.model_copy()

    # ---- credit ledger ----------------------------------------------------
    async def debit(self, tenant_id: str, amount):
        async with self._lock:
            tenant = self._tenants.get(tenant_id)
            if tenant is None:
                raise KeyError(f"Unknown tenant {tenant_id}")
            if tenant.credit_balance < amount:
                raise InsufficientFundsError(tenant_id, tenant.credit_balance, amount)
            tenant.credit_balance -= amount
            return tenant.credit_balance
