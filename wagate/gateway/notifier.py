"""
Downstream notifier.

Fire-and-forget POST of newly stored inbound messages to the tenant's
notification URL (its AI agent). The webhook response never waits for it.

Body:
    {"event": "message_received", "data": {...message, customer_phone, ...}}

When a signing secret is configured the raw body is signed with
`X-Gateway-Signature: sha256=<hex>`.
"""

import asyncio
import json
from typing import Any

import aiohttp

from wagate.core.config.settings import settings
from wagate.core.logging.logger import get_logger
from wagate.domain.models import ConversationMessage, Customer, Tenant

from .signature import compute_signature

EVENT_MESSAGE_RECEIVED = "message_received"


def build_notification(
    tenant: Tenant, customer: Customer, message: ConversationMessage
) -> dict[str, Any]:
    data = message.model_dump(mode="json")
    data.update(
        customer_phone=customer.phone,
        customer_name=customer.name,
        customer_language=customer.language or "english",
        tenant_id=tenant.id,
        namespace_prefix=tenant.namespace_prefix,
        phone_number_id=tenant.provider_sender_id,
    )
    return {"event": EVENT_MESSAGE_RECEIVED, "data": data}


class DownstreamNotifier:
    """
    Posts notifications in background tasks.

    Pending tasks are tracked so they are not garbage collected mid-flight
    and can be drained on shutdown.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout_seconds: float = settings.notification_timeout_seconds,
        signing_secret: str | None = settings.notification_signing_secret,
    ):
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.signing_secret = signing_secret
        self.logger = get_logger(__name__)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def notify(
        self, tenant: Tenant, customer: Customer, message: ConversationMessage
    ) -> asyncio.Task | None:
        """Schedule a notification; returns the task, or None without a URL."""
        if not tenant.notification_url:
            return None

        body = build_notification(tenant, customer, message)
        task = asyncio.create_task(
            self._post(tenant.notification_url, body),
            name=f"notify:{tenant.id}:{message.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_completion)
        return task

    def _on_completion(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.logger.debug(f"Notification cancelled: {task.get_name()}")
            return
        exception = task.exception()
        if exception:
            self.logger.error(
                f"Notification failed: {task.get_name()}: {exception}",
                exc_info=exception,
            )

    async def _post(self, url: str, body: dict[str, Any]) -> None:
        raw = json.dumps(body, separators=(",", ":")).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self.signing_secret:
            headers["X-Gateway-Signature"] = compute_signature(raw, self.signing_secret)

        try:
            async with self.session.post(
                url, data=raw, headers=headers, timeout=self.timeout
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    self.logger.error(
                        f"Notification to {url} failed: HTTP {response.status} - {error_text}"
                    )
                    return
                self.logger.debug(f"Notification delivered to {url}")
        except asyncio.TimeoutError:
            self.logger.error(f"Notification to {url} timed out")
        except aiohttp.ClientError as e:
            self.logger.error(f"Notification to {url} failed: {e}")

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for pending notifications, cancelling whatever is left."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_pending = await asyncio.wait(tasks, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            self.logger.warning(f"Cancelled {len(still_pending)} pending notification(s)")
