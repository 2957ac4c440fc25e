"""
Tests for the SQL repository against a temporary SQLite database.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from wagate.core.errors import InsufficientFundsError, StorageError
from wagate.database import DatabaseSessionManager, SQLGatewayRepository
from wagate.domain.models import (
    ConversationMessage,
    DeliveryLogEntry,
    DeliveryStatus,
    MediaKind,
    MessageDirection,
    Tenant,
    utc_now,
)

from ..factories import CUSTOMER_PHONE, SENDER_ID, make_image_header_template, make_template


@pytest.fixture
async def sql_repository(tmp_path):
    db = DatabaseSessionManager(f"sqlite:///{tmp_path / 'gateway.db'}", max_retries=1)
    await db.initialize()
    await db.create_schema()
    yield SQLGatewayRepository(db)
    await db.cleanup()


@pytest.fixture
async def sql_tenant(sql_repository) -> Tenant:
    return await sql_repository.save_tenant(
        Tenant(
            id="tenant-1",
            namespace_prefix="acme",
            provider_access_token="token",
            provider_sender_id=SENDER_ID,
            credit_balance=Decimal("2"),
        )
    )


class TestSessionManager:
    def test_url_normalization(self):
        assert DatabaseSessionManager("sqlite:///x.db").url == "sqlite+aiosqlite:///x.db"
        assert (
            DatabaseSessionManager("postgres://u:p@h/db").url
            == "postgresql+asyncpg://u:p@h/db"
        )

    def test_rejects_unknown_scheme(self):
        with pytest.raises(ValueError):
            DatabaseSessionManager("mysql://u:p@h/db")

    async def test_health_check(self, sql_repository):
        assert await sql_repository.db.health_check() is True


class TestTenantsAndCustomers:
    async def test_tenant_lookup(self, sql_repository, sql_tenant):
        assert (await sql_repository.get_tenant("tenant-1")).namespace_prefix == "acme"
        assert (await sql_repository.get_tenant_by_sender(SENDER_ID)).id == "tenant-1"
        assert await sql_repository.get_tenant_by_sender("other") is None

    async def test_inactive_tenant_is_hidden(self, sql_repository, sql_tenant):
        await sql_repository.save_tenant(sql_tenant.model_copy(update={"active": False}))

        assert await sql_repository.get_tenant("tenant-1") is None

    async def test_get_or_create_customer(self, sql_repository, sql_tenant):
        created = await sql_repository.get_or_create_customer("tenant-1", CUSTOMER_PHONE, "Jane")
        again = await sql_repository.get_or_create_customer("tenant-1", CUSTOMER_PHONE, "Other")

        assert again.id == created.id
        assert again.name == "Jane"
        assert again.ai_enabled is False

    async def test_touch_last_inbound_only_moves_forward(self, sql_repository, sql_tenant):
        customer = await sql_repository.get_or_create_customer("tenant-1", CUSTOMER_PHONE, "Jane")
        now = utc_now().replace(microsecond=0)

        assert await sql_repository.touch_last_inbound("tenant-1", customer.id, now) is True
        assert (
            await sql_repository.touch_last_inbound(
                "tenant-1", customer.id, now - timedelta(hours=1)
            )
            is False
        )

        stored = await sql_repository.get_customer_by_phone("tenant-1", CUSTOMER_PHONE)
        assert stored.last_inbound_at == now


class TestTemplates:
    async def test_category_lookup_is_ordered_by_name(self, sql_repository, sql_tenant):
        await sql_repository.save_template(make_template("tenant-1", id="b", name="zeta"))
        await sql_repository.save_template(make_template("tenant-1", id="a", name="alpha"))

        template = await sql_repository.get_active_template_by_category("tenant-1", "utility")

        assert template.name == "alpha"

    async def test_lookup_by_name_keeps_header_and_buttons(self, sql_repository, sql_tenant):
        await sql_repository.save_template(make_image_header_template("tenant-1"))

        template = await sql_repository.get_template_by_name("tenant-1", "promo_image")

        assert template.has_media_header
        assert template.buttons[0].index == 0
        assert await sql_repository.get_template_by_name("tenant-1", "promo_image", "es") is None


class TestConversation:
    async def test_insert_and_list_in_timestamp_order(self, sql_repository, sql_tenant):
        customer = await sql_repository.get_or_create_customer("tenant-1", CUSTOMER_PHONE, "Jane")
        now = utc_now()
        later = ConversationMessage(
            tenant_id="tenant-1",
            customer_id=customer.id,
            direction=MessageDirection.OUTBOUND,
            body="[IMAGE] Media file",
            media_type=MediaKind.IMAGE,
            media_url="http://media/acme/1.jpg",
            timestamp=now,
        )
        earlier = ConversationMessage(
            tenant_id="tenant-1",
            customer_id=customer.id,
            direction=MessageDirection.INBOUND,
            body="Hi",
            timestamp=now - timedelta(seconds=5),
        )
        await sql_repository.insert_message(later)
        await sql_repository.insert_message(earlier)

        rows = await sql_repository.list_messages("tenant-1", customer.id)

        assert [row.body for row in rows] == ["Hi", "[IMAGE] Media file"]
        assert rows[1].media_type == MediaKind.IMAGE


class TestDeliveryLog:
    async def test_status_never_regresses(self, sql_repository, sql_tenant):
        await sql_repository.upsert_delivery_log(
            DeliveryLogEntry(tenant_id="tenant-1", provider_message_id="wamid.1", category="utility")
        )
        await sql_repository.upsert_delivery_log(
            DeliveryLogEntry(
                tenant_id="tenant-1", provider_message_id="wamid.1", status=DeliveryStatus.READ
            )
        )
        stored = await sql_repository.upsert_delivery_log(
            DeliveryLogEntry(
                tenant_id="tenant-1",
                provider_message_id="wamid.1",
                status=DeliveryStatus.DELIVERED,
            )
        )

        assert stored.status == DeliveryStatus.READ
        assert stored.category == "utility"

    async def test_other_tenant_cannot_read_entry(self, sql_repository, sql_tenant):
        await sql_repository.upsert_delivery_log(
            DeliveryLogEntry(tenant_id="tenant-1", provider_message_id="wamid.1")
        )

        assert await sql_repository.get_delivery_log("tenant-2", "wamid.1") is None

    async def test_message_id_cannot_move_tenant(self, sql_repository, sql_tenant):
        await sql_repository.upsert_delivery_log(
            DeliveryLogEntry(tenant_id="tenant-1", provider_message_id="wamid.1")
        )

        with pytest.raises(StorageError):
            await sql_repository.upsert_delivery_log(
                DeliveryLogEntry(tenant_id="tenant-2", provider_message_id="wamid.1")
            )


class TestCreditLedger:
    async def test_debit_until_empty(self, sql_repository, sql_tenant):
        assert await sql_repository.debit("tenant-1", Decimal("1")) == Decimal("1")
        assert await sql_repository.debit("tenant-1", Decimal("1")) == Decimal("0")

        with pytest.raises(InsufficientFundsError):
            await sql_repository.debit("tenant-1", Decimal("1"))

    async def test_unknown_tenant(self, sql_repository):
        with pytest.raises(KeyError):
            await sql_repository.debit("nope", Decimal("1"))
