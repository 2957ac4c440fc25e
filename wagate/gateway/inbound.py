"""
Inbound webhook processor.

Processes WhatsApp webhook deliveries:
- messages: dedup -> customer get-or-create -> session-window touch ->
  classify -> best-effort media mirror -> store -> invalidate -> notify
- statuses: delivery log upsert

Each message and status is isolated. A failing item is logged and skipped so
the provider still receives 200 and the rest of the delivery is processed.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from wagate.core.config.settings import settings
from wagate.core.errors import ValidationError
from wagate.core.logging.context import clear_request_context, set_request_context
from wagate.core.logging.logger import get_logger
from wagate.domain.interfaces import (
    IConversationCache,
    IDedupStore,
    IGatewayRepository,
)
from wagate.domain.models import (
    ConversationMessage,
    DeliveryLogEntry,
    DeliveryStatus,
    MediaKind,
    MessageDirection,
    Tenant,
    utc_now,
)
from wagate.messaging.whatsapp.client.whatsapp_client import WhatsAppClient
from wagate.messaging.whatsapp.handlers.whatsapp_media_handler import (
    WhatsAppMediaHandler,
)
from wagate.messaging.whatsapp.models.webhook_models import (
    WebhookEnvelope,
    WebhookValue,
)
from wagate.persistence.key_factory import KeyFactory, default_key_factory

from .media_mirror import MediaMirror
from .notifier import DownstreamNotifier
from .phone import phone_from_wa_id

MEDIA_MESSAGE_TYPES = {
    "image": MediaKind.IMAGE,
    "video": MediaKind.VIDEO,
    "audio": MediaKind.AUDIO,
    "document": MediaKind.DOCUMENT,
}


@dataclass
class InboundContent:
    """What gets stored for one inbound message."""

    body: str
    media_type: MediaKind | None = None
    media_id: str | None = None
    caption: str | None = None


@dataclass
class WebhookProcessingSummary:
    messages_stored: int = 0
    duplicates: int = 0
    statuses_updated: int = 0
    skipped: int = 0
    failed: int = 0
    stored_message_ids: list[str] = field(default_factory=list)


def classify_message(message: dict[str, Any]) -> InboundContent:
    """Turn one webhook message into stored text plus optional media reference."""
    message_type = str(message.get("type") or "unknown")

    if message_type == "text":
        return InboundContent(body=(message.get("text") or {}).get("body", ""))

    if message_type in MEDIA_MESSAGE_TYPES:
        media = message.get(message_type) or {}
        caption = media.get("caption") or None
        return InboundContent(
            body=caption or f"[{message_type.upper()}] Media file",
            media_type=MEDIA_MESSAGE_TYPES[message_type],
            media_id=media.get("id"),
            caption=caption,
        )

    if message_type == "sticker":
        return InboundContent(
            body="[STICKER] Sticker message",
            media_type=MediaKind.STICKER,
            media_id=(message.get("sticker") or {}).get("id"),
        )

    if message_type == "button":
        button = message.get("button") or {}
        return InboundContent(
            body=button.get("text") or button.get("payload") or "Button clicked"
        )

    if message_type == "interactive":
        interactive = message.get("interactive") or {}
        interactive_type = str(interactive.get("type") or "unknown")
        reply = interactive.get(interactive_type) or {}
        if interactive_type in ("button_reply", "list_reply") and reply.get("title"):
            return InboundContent(body=reply["title"])
        return InboundContent(
            body=f"[INTERACTIVE_{interactive_type.upper()}] Interactive message"
        )

    return InboundContent(body=f"[{message_type.upper()}] Unsupported message type")


def _provider_time(raw: Any) -> datetime:
    """Webhook timestamps are epoch seconds as strings."""
    try:
        return datetime.fromtimestamp(int(raw), UTC)
    except (TypeError, ValueError, OverflowError):
        return utc_now()


class InboundWebhookProcessor:
    """Applies webhook deliveries to the conversation store."""

    def __init__(
        self,
        repository: IGatewayRepository,
        media_mirror: MediaMirror,
        dedup_store: IDedupStore,
        client_factory: Callable[[Tenant], WhatsAppClient],
        notifier: DownstreamNotifier | None = None,
        conversation_cache: IConversationCache | None = None,
        key_factory: KeyFactory = default_key_factory,
        dedup_ttl_seconds: int = settings.dedup_ttl_seconds,
    ):
        self.repository = repository
        self.media_mirror = media_mirror
        self.dedup_store = dedup_store
        self.client_factory = client_factory
        self.notifier = notifier
        self.conversation_cache = conversation_cache
        self.key_factory = key_factory
        self.dedup_ttl_seconds = dedup_ttl_seconds
        self.logger = get_logger(__name__)
        self._tasks: set[asyncio.Task] = set()

    @staticmethod
    def parse_envelope(payload: Any) -> WebhookEnvelope:
        """
        Raises:
            ValidationError: Not a WhatsApp Business Account webhook
        """
        try:
            return WebhookEnvelope.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid WhatsApp webhook payload",
                error_code="INVALID_WEBHOOK_PAYLOAD",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    async def process_shielded(self, envelope: WebhookEnvelope) -> WebhookProcessingSummary:
        """Run process() in a shielded task that outlives a cancelled caller."""
        task = asyncio.create_task(self.process(envelope), name="webhook-delivery")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return await asyncio.shield(task)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for deliveries still being processed."""
        if self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)

    async def process(self, envelope: WebhookEnvelope) -> WebhookProcessingSummary:
        """Process every message and status in the delivery. Never raises per item."""
        summary = WebhookProcessingSummary()

        for value in envelope.values():
            sender_id = value.metadata.phone_number_id if value.metadata else None
            item_count = len(value.messages) + len(value.statuses)
            try:
                tenant = (
                    await self.repository.get_tenant_by_sender(sender_id)
                    if sender_id
                    else None
                )
            except Exception as e:
                summary.failed += item_count
                self.logger.exception(f"Tenant lookup failed for {sender_id}: {e}")
                continue
            if tenant is None:
                summary.skipped += item_count
                self.logger.warning(
                    f"No active tenant for phone_number_id {sender_id}, "
                    f"skipping {item_count} item(s)"
                )
                continue

            for message in value.messages:
                await self._process_message_isolated(tenant, value, message, summary)
            for status in value.statuses:
                await self._process_status_isolated(tenant, status, summary)

        self.logger.info(
            f"Webhook processed: {summary.messages_stored} stored, "
            f"{summary.duplicates} duplicate(s), {summary.statuses_updated} status(es), "
            f"{summary.failed} failed"
        )
        return summary

    # ---- isolation boundaries ---------------------------------------------
    async def _process_message_isolated(
        self,
        tenant: Tenant,
        value: WebhookValue,
        message: dict[str, Any],
        summary: WebhookProcessingSummary,
    ) -> None:
        try:
            stored = await self.process_message(tenant, value, message)
            if stored is None:
                summary.duplicates += 1
            else:
                summary.messages_stored += 1
                summary.stored_message_ids.append(stored.id)
        except Exception as e:
            summary.failed += 1
            self.logger.exception(f"Failed to process message {message.get('id')}: {e}")
        finally:
            clear_request_context()

    async def _process_status_isolated(
        self, tenant: Tenant, status: dict[str, Any], summary: WebhookProcessingSummary
    ) -> None:
        try:
            if await self.process_status(tenant, status):
                summary.statuses_updated += 1
            else:
                summary.skipped += 1
        except Exception as e:
            summary.failed += 1
            self.logger.exception(f"Failed to process status {status.get('id')}: {e}")
        finally:
            clear_request_context()

    # ---- messages ---------------------------------------------------------
    async def process_message(
        self, tenant: Tenant, value: WebhookValue, message: dict[str, Any]
    ) -> ConversationMessage | None:
        """
        Store one inbound message.

        Returns:
            The stored message, or None for a duplicate delivery
        """
        provider_message_id = message.get("id")
        wa_id = message.get("from")
        if not provider_message_id or not wa_id:
            raise ValueError("Webhook message without id or sender")

        phone = phone_from_wa_id(wa_id)
        set_request_context(tenant_id=tenant.id, user_id=phone)

        dedup_key = self.key_factory.inbound_event(tenant.id, provider_message_id)
        if not await self._claim(dedup_key):
            self.logger.info(f"Duplicate delivery of {provider_message_id}, skipping")
            return None

        try:
            return await self._store_message(tenant, value, message, phone)
        except BaseException:
            # Let the provider's retry process it again
            await self.dedup_store.release(dedup_key)
            raise

    async def _claim(self, key: str) -> bool:
        try:
            return await self.dedup_store.claim(key, self.dedup_ttl_seconds)
        except Exception as e:
            # Losing a message is worse than storing a replay twice
            self.logger.warning(f"Dedup store unavailable, processing without claim: {e}")
            return True

    async def _store_message(
        self,
        tenant: Tenant,
        value: WebhookValue,
        message: dict[str, Any],
        phone: str,
    ) -> ConversationMessage:
        name = value.contact_name(message["from"]) or phone
        customer = await self.repository.get_or_create_customer(tenant.id, phone, name)

        sent_at = _provider_time(message.get("timestamp"))
        await self.repository.touch_last_inbound(tenant.id, customer.id, sent_at)

        content = classify_message(message)
        media_url = None
        if content.media_id:
            media_url = await self._mirror_best_effort(tenant, content.media_id)

        stored = await self.repository.insert_message(
            ConversationMessage(
                tenant_id=tenant.id,
                customer_id=customer.id,
                direction=MessageDirection.INBOUND,
                body=content.body,
                media_type=content.media_type,
                media_url=media_url,
                caption=content.caption,
                provider_message_id=message["id"],
                timestamp=sent_at,
                is_read=False,
            )
        )
        self.logger.info(
            f"Stored inbound {message.get('type')} message {message['id']}"
        )

        if self.conversation_cache is not None:
            try:
                await self.conversation_cache.invalidate(tenant.id, customer.id)
            except Exception as e:
                self.logger.warning(f"Cache invalidation failed: {e}")

        if self.notifier is not None and customer.ai_enabled and tenant.notification_url:
            self.notifier.notify(tenant, customer, stored)

        return stored

    async def _mirror_best_effort(self, tenant: Tenant, media_id: str) -> str | None:
        handler = WhatsAppMediaHandler(self.client_factory(tenant), tenant.id)
        try:
            mirrored = await self.media_mirror.mirror(
                handler, tenant, media_id=media_id, direction="incoming"
            )
        except Exception as e:
            self.logger.error(f"Media {media_id} not mirrored, storing without URL: {e}")
            return None
        return mirrored.public_url

    # ---- statuses ---------------------------------------------------------
    async def process_status(self, tenant: Tenant, status: dict[str, Any]) -> bool:
        """
        Upsert the delivery log for one status callback.

        Returns:
            False when the status value is not tracked
        """
        provider_message_id = status.get("id")
        if not provider_message_id:
            raise ValueError("Status callback without message id")
        set_request_context(tenant_id=tenant.id)

        try:
            delivery_status = DeliveryStatus(status.get("status"))
        except ValueError:
            self.logger.debug(
                f"Ignoring status {status.get('status')!r} for {provider_message_id}"
            )
            return False

        error = None
        errors = status.get("errors") or []
        if errors:
            first = errors[0]
            error = (
                first.get("message")
                or first.get("title")
                or str(first.get("code", "unknown error"))
            )

        entry = await self.repository.upsert_delivery_log(
            DeliveryLogEntry(
                tenant_id=tenant.id,
                provider_message_id=provider_message_id,
                category=(status.get("pricing") or {}).get("category"),
                status=delivery_status,
                updated_at=_provider_time(status.get("timestamp")),
                error=error,
            )
        )
        self.logger.debug(
            f"Delivery log {provider_message_id}: {entry.status.value}"
        )
        return True
