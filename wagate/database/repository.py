"""
SQL implementation of the gateway repository and credit ledger.

All tenant data lives in shared tables filtered by tenant_id. Records are
mapped to domain models at the boundary so callers never hold ORM objects.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from wagate.core.errors import InsufficientFundsError, StorageError
from wagate.core.logging.logger import get_logger
from wagate.database.models import (
    ConversationMessageRecord,
    CustomerRecord,
    DeliveryLogRecord,
    TemplateRecord,
    TenantRecord,
)
from wagate.database.session_manager import DatabaseSessionManager
from wagate.domain.interfaces import ICreditLedger, IGatewayRepository
from wagate.domain.models import (
    ConversationMessage,
    Customer,
    DeliveryLogEntry,
    Template,
    TemplateButton,
    TemplateHeader,
    Tenant,
)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; everything is stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ---- record <-> domain mapping -------------------------------------------


def _tenant(record: TenantRecord) -> Tenant:
    return Tenant(
        id=record.id,
        namespace_prefix=record.namespace_prefix,
        provider_access_token=record.provider_access_token,
        provider_sender_id=record.provider_sender_id,
        credit_balance=Decimal(record.credit_balance),
        notification_url=record.notification_url,
        active=record.active,
    )


def _customer(record: CustomerRecord) -> Customer:
    return Customer(
        id=record.id,
        tenant_id=record.tenant_id,
        phone=record.phone,
        name=record.name,
        ai_enabled=record.ai_enabled,
        language=record.language,
        last_inbound_at=_as_utc(record.last_inbound_at),
    )


def _template(record: TemplateRecord) -> Template:
    return Template(
        id=record.id,
        tenant_id=record.tenant_id,
        name=record.name,
        language_code=record.language_code,
        category=record.category,
        active=record.active,
        header=TemplateHeader.model_validate(record.header) if record.header else None,
        body_text=record.body_text,
        body_parameter_names=list(record.body_parameter_names or []),
        buttons=[TemplateButton.model_validate(b) for b in record.buttons or []],
    )


def _message(record: ConversationMessageRecord) -> ConversationMessage:
    return ConversationMessage(
        id=record.id,
        tenant_id=record.tenant_id,
        customer_id=record.customer_id,
        direction=record.direction,
        body=record.body,
        template_payload=record.template_payload,
        media_type=record.media_type,
        media_url=record.media_url,
        caption=record.caption,
        provider_message_id=record.provider_message_id,
        timestamp=_as_utc(record.timestamp),
        is_read=record.is_read,
    )


def _delivery(record: DeliveryLogRecord) -> DeliveryLogEntry:
    return DeliveryLogEntry(
        tenant_id=record.tenant_id,
        provider_message_id=record.provider_message_id,
        category=record.category,
        status=record.status,
        updated_at=_as_utc(record.updated_at),
        error=record.error,
    )


class SQLGatewayRepository(IGatewayRepository, ICreditLedger):
    """Repository backed by SQLModel tables through DatabaseSessionManager."""

    def __init__(self, db: DatabaseSessionManager):
        self.db = db
        self.logger = get_logger(__name__)

    # ---- tenants ----------------------------------------------------------
    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        async with self.db.get_session() as session:
            record = await session.get(TenantRecord, tenant_id)
            if record is None or not record.active:
                return None
            return _tenant(record)

    async def get_tenant_by_sender(self, sender_id: str) -> Tenant | None:
        async with self.db.get_session() as session:
            result = await session.exec(
                select(TenantRecord).where(
                    TenantRecord.provider_sender_id == sender_id,
                    TenantRecord.active == True,  # noqa: E712
                )
            )
            record = result.first()
            return _tenant(record) if record else None

    async def save_tenant(self, tenant: Tenant) -> Tenant:
        async with self.db.get_session() as session:
            await session.merge(TenantRecord(**tenant.model_dump()))
        return tenant

    # ---- customers --------------------------------------------------------
    async def get_customer_by_phone(
        self, tenant_id: str, phone: str
    ) -> Customer | None:
        async with self.db.get_session() as session:
            result = await session.exec(
                select(CustomerRecord).where(
                    CustomerRecord.tenant_id == tenant_id,
                    CustomerRecord.phone == phone,
                )
            )
            record = result.first()
            return _customer(record) if record else None

    async def get_or_create_customer(
        self, tenant_id: str, phone: str, name: str
    ) -> Customer:
        existing = await self.get_customer_by_phone(tenant_id, phone)
        if existing is not None:
            return existing

        customer = Customer(tenant_id=tenant_id, phone=phone, name=name)
        try:
            async with self.db.get_session() as session:
                session.add(CustomerRecord(**customer.model_dump()))
        except IntegrityError:
            # Concurrent webhook created the same customer first
            existing = await self.get_customer_by_phone(tenant_id, phone)
            if existing is None:
                raise
            return existing

        self.logger.info(f"Created customer {customer.id} for tenant {tenant_id}")
        return customer

    async def save_customer(self, customer: Customer) -> Customer:
        data = customer.model_dump()
        data["last_inbound_at"] = _as_utc(customer.last_inbound_at)
        async with self.db.get_session() as session:
            await session.merge(CustomerRecord(**data))
        return customer

    async def touch_last_inbound(
        self, tenant_id: str, customer_id: str, at: datetime
    ) -> bool:
        at = _as_utc(at)
        async with self.db.get_session() as session:
            result = await session.execute(
                update(CustomerRecord)
                .where(
                    CustomerRecord.id == customer_id,
                    CustomerRecord.tenant_id == tenant_id,
                    or_(
                        CustomerRecord.last_inbound_at.is_(None),
                        CustomerRecord.last_inbound_at < at,
                    ),
                )
                .values(last_inbound_at=at)
            )
            return result.rowcount > 0

    # ---- templates --------------------------------------------------------
    async def get_active_template_by_category(
        self, tenant_id: str, category: str
    ) -> Template | None:
        async with self.db.get_session() as session:
            result = await session.exec(
                select(TemplateRecord)
                .where(
                    TemplateRecord.tenant_id == tenant_id,
                    TemplateRecord.category == category,
                    TemplateRecord.active == True,  # noqa: E712
                )
                .order_by(TemplateRecord.name)
            )
            record = result.first()
            return _template(record) if record else None

    async def get_template_by_name(
        self, tenant_id: str, name: str, language_code: str | None = None
    ) -> Template | None:
        statement = select(TemplateRecord).where(
            TemplateRecord.tenant_id == tenant_id,
            TemplateRecord.name == name,
            TemplateRecord.active == True,  # noqa: E712
        )
        if language_code:
            statement = statement.where(TemplateRecord.language_code == language_code)

        async with self.db.get_session() as session:
            result = await session.exec(statement)
            record = result.first()
            return _template(record) if record else None

    async def save_template(self, template: Template) -> Template:
        data = template.model_dump(mode="json")
        async with self.db.get_session() as session:
            await session.merge(TemplateRecord(**data))
        return template

    # ---- conversation -----------------------------------------------------
    async def insert_message(self, message: ConversationMessage) -> ConversationMessage:
        data = message.model_dump()
        data["timestamp"] = _as_utc(message.timestamp)
        try:
            async with self.db.get_session() as session:
                session.add(ConversationMessageRecord(**data))
        except IntegrityError as e:
            raise StorageError(f"Failed to store message {message.id}: {e}") from e
        return message

    async def list_messages(
        self, tenant_id: str, customer_id: str
    ) -> list[ConversationMessage]:
        async with self.db.get_session() as session:
            result = await session.exec(
                select(ConversationMessageRecord)
                .where(
                    ConversationMessageRecord.tenant_id == tenant_id,
                    ConversationMessageRecord.customer_id == customer_id,
                )
                .order_by(ConversationMessageRecord.timestamp)
            )
            return [_message(record) for record in result.all()]

    # ---- delivery log -----------------------------------------------------
    async def upsert_delivery_log(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        try:
            return await self._upsert_delivery_log(entry)
        except IntegrityError:
            # Lost an insert race for the same provider message id
            return await self._upsert_delivery_log(entry)

    async def _upsert_delivery_log(self, entry: DeliveryLogEntry) -> DeliveryLogEntry:
        async with self.db.get_session() as session:
            record = await session.get(
                DeliveryLogRecord, entry.provider_message_id, with_for_update=True
            )
            if record is None:
                record = DeliveryLogRecord(
                    provider_message_id=entry.provider_message_id,
                    tenant_id=entry.tenant_id,
                    category=entry.category,
                    status=entry.status,
                    updated_at=_as_utc(entry.updated_at),
                    error=entry.error,
                )
                session.add(record)
                return entry

            if record.tenant_id != entry.tenant_id:
                raise StorageError(
                    f"Provider message {entry.provider_message_id} belongs to another tenant"
                )
            if entry.status.supersedes(record.status):
                record.status = entry.status
                record.updated_at = _as_utc(entry.updated_at)
                record.error = entry.error
                if entry.category:
                    record.category = entry.category
                session.add(record)
            return _delivery(record)

    async def get_delivery_log(
        self, tenant_id: str, provider_message_id: str
    ) -> DeliveryLogEntry | None:
        async with self.db.get_session() as session:
            record = await session.get(DeliveryLogRecord, provider_message_id)
            if record is None or record.tenant_id != tenant_id:
                return None
            return _delivery(record)

    # ---- credit ledger ----------------------------------------------------
    async def debit(self, tenant_id: str, amount: Decimal) -> Decimal:
        async with self.db.get_session() as session:
            result = await session.execute(
                update(TenantRecord)
                .where(
                    TenantRecord.id == tenant_id,
                    TenantRecord.credit_balance >= amount,
                )
                .values(credit_balance=TenantRecord.credit_balance - amount)
            )
            balance_result = await session.exec(
                select(TenantRecord.credit_balance).where(TenantRecord.id == tenant_id)
            )
            balance = balance_result.first()
            if balance is None:
                raise KeyError(f"Unknown tenant {tenant_id}")
            if result.rowcount == 0:
                raise InsufficientFundsError(tenant_id, Decimal(balance), amount)
            return Decimal(balance)
