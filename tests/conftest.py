"""
Pytest configuration and common fixtures for wagate tests.

Provides an in-memory gateway (repository, storage, dedup, cache) wired to
the fake WhatsApp client from tests.factories.
"""

import os
import tempfile
from collections.abc import Generator
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "DEV")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("DATABASE_URL", "memory://")
os.environ.setdefault("LOG_DIR", tempfile.gettempdir())

from wagate.api import create_app  # noqa: E402
from wagate.core.config.settings import Settings  # noqa: E402
from wagate.domain.models import Customer, Tenant, utc_now  # noqa: E402
from wagate.gateway import GatewayServices, MediaMirror, OutboundComposer  # noqa: E402
from wagate.gateway.inbound import InboundWebhookProcessor  # noqa: E402
from wagate.persistence.memory import (  # noqa: E402
    InMemoryConversationCache,
    InMemoryDedupStore,
    InMemoryGatewayRepository,
    InMemoryObjectStorage,
)

from .factories import (  # noqa: E402
    APP_SECRET,
    CUSTOMER_PHONE,
    SENDER_ID,
    VERIFY_TOKEN,
    FakeWhatsAppClient,
)


@pytest.fixture
def temp_media_dir() -> Generator[str, None, None]:
    with tempfile.TemporaryDirectory() as tmp:
        yield tmp


# Environment setup for tests
@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch, temp_media_dir):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "DEV")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("DATABASE_URL", "memory://")
    monkeypatch.setenv("WHATSAPP_VERIFY_TOKEN", VERIFY_TOKEN)
    monkeypatch.setenv("WHATSAPP_APP_SECRET", APP_SECRET)
    monkeypatch.setenv("WEBHOOK_SIGNATURE_STRICT", "true")
    monkeypatch.setenv("MEDIA_STORAGE_DIR", temp_media_dir)
    monkeypatch.setenv("MEDIA_PUBLIC_BASE_URL", "http://testserver/media")
    monkeypatch.delenv("REDIS_URL", raising=False)


@pytest.fixture
def app_settings() -> Settings:
    return Settings()


@pytest.fixture
def repository() -> InMemoryGatewayRepository:
    return InMemoryGatewayRepository()


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage("http://testserver/media")


@pytest.fixture
def dedup_store() -> InMemoryDedupStore:
    return InMemoryDedupStore()


@pytest.fixture
def conversation_cache() -> InMemoryConversationCache:
    return InMemoryConversationCache()


@pytest.fixture
def fake_client() -> FakeWhatsAppClient:
    return FakeWhatsAppClient()


@pytest.fixture
def media_mirror(storage) -> MediaMirror:
    return MediaMirror(storage, batch_limit=5, timeout_seconds=5)


@pytest.fixture
async def tenant(repository) -> Tenant:
    tenant = Tenant(
        id="tenant-1",
        namespace_prefix="acme",
        provider_access_token="token",
        provider_sender_id=SENDER_ID,
        credit_balance=Decimal("10"),
    )
    return await repository.save_tenant(tenant)


@pytest.fixture
async def customer(repository, tenant) -> Customer:
    """Customer who wrote an hour ago: the session window is open."""
    customer = Customer(
        id="customer-1",
        tenant_id=tenant.id,
        phone=CUSTOMER_PHONE,
        name="Jane Doe",
        last_inbound_at=utc_now() - timedelta(hours=1),
    )
    return await repository.save_customer(customer)


@pytest.fixture
def composer(
    repository, media_mirror, fake_client, conversation_cache
) -> OutboundComposer:
    return OutboundComposer(
        repository=repository,
        credit_ledger=repository,
        media_mirror=media_mirror,
        client_factory=lambda tenant: fake_client,
        conversation_cache=conversation_cache,
        credit_cost=Decimal("1"),
    )


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def inbound(
    repository, media_mirror, dedup_store, fake_client, notifier, conversation_cache
) -> InboundWebhookProcessor:
    return InboundWebhookProcessor(
        repository=repository,
        media_mirror=media_mirror,
        dedup_store=dedup_store,
        client_factory=lambda tenant: fake_client,
        notifier=notifier,
        conversation_cache=conversation_cache,
    )


@pytest.fixture
def services(
    app_settings, repository, storage, dedup_store, conversation_cache, fake_client
) -> GatewayServices:
    """Service container wired to in-memory backends and the fake client."""
    services = GatewayServices(
        settings=app_settings,
        http_session=MagicMock(),
        repository=repository,
        credit_ledger=repository,
        storage=storage,
        dedup_store=dedup_store,
        conversation_cache=conversation_cache,
    )
    services.composer.client_factory = lambda tenant: fake_client
    services.inbound.client_factory = lambda tenant: fake_client
    return services


@pytest.fixture
def test_client(services) -> TestClient:
    """Test client for the app wired to the in-memory services."""
    return TestClient(create_app(services=services))
