"""
SQLModel table definitions.

Every tenant-owned table carries an indexed tenant_id column; tenants share
tables instead of getting per-tenant table names.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Numeric, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel

from wagate.domain.models import DeliveryStatus, MediaKind, MessageDirection


def enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def get_enum_column(
    enum_cls: type[Enum], column_name: str, nullable: bool = False
) -> Column:
    """
    Create a Column storing a str enum by value.

    Non-native so the same schema works on SQLite and PostgreSQL.
    """
    return Column(
        SAEnum(
            enum_cls,
            name=column_name,
            values_callable=enum_values,
            native_enum=False,
        ),
        nullable=nullable,
    )


class TenantRecord(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(primary_key=True, max_length=64)
    namespace_prefix: str = Field(unique=True, max_length=64)
    provider_access_token: str = Field(sa_column=Column(Text, nullable=False))
    provider_sender_id: str = Field(index=True, unique=True, max_length=64)
    credit_balance: Decimal = Field(
        default=Decimal("0"), sa_column=Column(Numeric(14, 4), nullable=False)
    )
    notification_url: str | None = Field(default=None, max_length=2048)
    active: bool = Field(default=True)


class CustomerRecord(SQLModel, table=True):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("tenant_id", "phone"),)

    id: str = Field(primary_key=True, max_length=64)
    tenant_id: str = Field(index=True, foreign_key="tenants.id", max_length=64)
    phone: str = Field(max_length=16)
    name: str = Field(max_length=255)
    ai_enabled: bool = Field(default=False)
    language: str = Field(default="english", max_length=32)
    last_inbound_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class TemplateRecord(SQLModel, table=True):
    __tablename__ = "templates"

    id: str = Field(primary_key=True, max_length=64)
    tenant_id: str = Field(index=True, foreign_key="tenants.id", max_length=64)
    name: str = Field(index=True, max_length=512)
    language_code: str = Field(default="en", max_length=16)
    category: str = Field(index=True, max_length=64)
    active: bool = Field(default=True)
    header: dict | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    body_text: str = Field(default="", sa_column=Column(Text, nullable=False))
    body_parameter_names: list = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    buttons: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))


class ConversationMessageRecord(SQLModel, table=True):
    __tablename__ = "conversation_messages"

    id: str = Field(primary_key=True, max_length=64)
    tenant_id: str = Field(index=True, foreign_key="tenants.id", max_length=64)
    customer_id: str = Field(index=True, foreign_key="customers.id", max_length=64)
    direction: MessageDirection = Field(
        sa_column=get_enum_column(MessageDirection, "direction_t")
    )
    body: str = Field(default="", sa_column=Column(Text, nullable=False))
    template_payload: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    media_type: MediaKind | None = Field(
        default=None,
        sa_column=get_enum_column(MediaKind, "media_kind_t", nullable=True),
    )
    media_url: str | None = Field(default=None, max_length=2048)
    caption: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    provider_message_id: str | None = Field(default=None, index=True, max_length=128)
    timestamp: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    is_read: bool = Field(default=False)


class DeliveryLogRecord(SQLModel, table=True):
    __tablename__ = "delivery_log"

    provider_message_id: str = Field(primary_key=True, max_length=128)
    tenant_id: str = Field(index=True, foreign_key="tenants.id", max_length=64)
    category: str | None = Field(default=None, max_length=64)
    status: DeliveryStatus = Field(
        sa_column=get_enum_column(DeliveryStatus, "delivery_status_t")
    )
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))


GATEWAY_TABLES: list[type[SQLModel]] = [
    TenantRecord,
    CustomerRecord,
    TemplateRecord,
    ConversationMessageRecord,
    DeliveryLogRecord,
]
