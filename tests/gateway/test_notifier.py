"""
Tests for downstream notifications.
"""

import asyncio
import json
from unittest.mock import MagicMock

import aiohttp
import pytest

from wagate.domain.models import ConversationMessage, Customer, MessageDirection, Tenant
from wagate.gateway.notifier import DownstreamNotifier, build_notification
from wagate.gateway.signature import compute_signature


class FakePostResponse:
    def __init__(self, status: int = 200, text: str = "ok"):
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def agent_tenant() -> Tenant:
    return Tenant(
        id="tenant-1",
        namespace_prefix="acme",
        provider_access_token="token",
        provider_sender_id="100200300",
        notification_url="https://agent.test/hook",
    )


@pytest.fixture
def ai_customer() -> Customer:
    return Customer(
        id="customer-1", tenant_id="tenant-1", phone="+15551234567", name="Jane", ai_enabled=True
    )


@pytest.fixture
def inbound_message() -> ConversationMessage:
    return ConversationMessage(
        tenant_id="tenant-1",
        customer_id="customer-1",
        direction=MessageDirection.INBOUND,
        body="Hello",
    )


def test_notification_body(agent_tenant, ai_customer, inbound_message):
    body = build_notification(agent_tenant, ai_customer, inbound_message)

    assert body["event"] == "message_received"
    assert body["data"]["body"] == "Hello"
    assert body["data"]["customer_phone"] == "+15551234567"
    assert body["data"]["customer_language"] == "english"
    assert body["data"]["namespace_prefix"] == "acme"
    assert body["data"]["phone_number_id"] == "100200300"


class TestDownstreamNotifier:
    async def test_posts_signed_body(self, agent_tenant, ai_customer, inbound_message):
        session = MagicMock()
        session.post = MagicMock(return_value=FakePostResponse())
        notifier = DownstreamNotifier(session, timeout_seconds=1, signing_secret="shh")

        task = notifier.notify(agent_tenant, ai_customer, inbound_message)
        await task

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == "https://agent.test/hook"
        assert json.loads(kwargs["data"])["event"] == "message_received"
        assert kwargs["headers"]["X-Gateway-Signature"] == compute_signature(
            kwargs["data"], "shh"
        )
        assert notifier.pending == 0

    async def test_no_url_means_no_task(self, agent_tenant, ai_customer, inbound_message):
        notifier = DownstreamNotifier(MagicMock(), timeout_seconds=1, signing_secret=None)

        task = notifier.notify(
            agent_tenant.model_copy(update={"notification_url": None}),
            ai_customer,
            inbound_message,
        )

        assert task is None

    async def test_http_error_is_logged_not_raised(
        self, agent_tenant, ai_customer, inbound_message
    ):
        session = MagicMock()
        session.post = MagicMock(return_value=FakePostResponse(503, "unavailable"))
        notifier = DownstreamNotifier(session, timeout_seconds=1, signing_secret=None)

        await notifier.notify(agent_tenant, ai_customer, inbound_message)

        assert "X-Gateway-Signature" not in session.post.call_args.kwargs["headers"]

    async def test_connection_error_is_logged_not_raised(
        self, agent_tenant, ai_customer, inbound_message
    ):
        session = MagicMock()
        session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))
        notifier = DownstreamNotifier(session, timeout_seconds=1, signing_secret=None)

        await notifier.notify(agent_tenant, ai_customer, inbound_message)

    async def test_drain_cancels_slow_notifications(
        self, agent_tenant, ai_customer, inbound_message
    ):
        notifier = DownstreamNotifier(MagicMock(), timeout_seconds=1, signing_secret=None)

        async def slow_post(url, body):
            await asyncio.sleep(10)

        notifier._post = slow_post
        task = notifier.notify(agent_tenant, ai_customer, inbound_message)

        await notifier.drain(timeout=0.01)

        assert task.cancelled()
        assert notifier.pending == 0
