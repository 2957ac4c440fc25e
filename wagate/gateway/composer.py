"""
Outbound composer.

Turns a generic send request into one or more Cloud API payloads:

    normalize phone -> tenant + customer -> session-window policy
      -> media mirror (free-form) | header media + render (template)
      -> concurrent dispatch -> persist rows + delivery log -> debit

Every validation and policy check runs before the first network call.
"""

import asyncio
from collections.abc import Callable
from datetime import timedelta
from decimal import Decimal

from wagate.core.config.settings import settings
from wagate.core.errors import (
    CustomerNotFound,
    GatewayError,
    MediaTypeMismatch,
    PolicyError,
    ProviderError,
    StorageError,
    TenantNotFound,
    UnsupportedMessageType,
    ValidationError,
)
from wagate.core.logging.context import set_request_context
from wagate.core.logging.logger import get_logger
from wagate.domain.interfaces import (
    IConversationCache,
    ICreditLedger,
    IGatewayRepository,
)
from wagate.domain.models import (
    ConversationMessage,
    Customer,
    DeliveryLogEntry,
    DeliveryStatus,
    MessageDirection,
    Template,
    Tenant,
    utc_now,
)
from wagate.messaging.whatsapp.client.whatsapp_client import WhatsAppClient
from wagate.messaging.whatsapp.handlers.whatsapp_media_handler import (
    WhatsAppMediaHandler,
    extension_for,
)
from wagate.messaging.whatsapp.models.send_models import (
    DispatchResult,
    SendMessageRequest,
    SendMessageResponse,
)
from wagate.messaging.whatsapp.models.template_models import MediaHeader

from .media_mirror import MediaMirror, classify_mime
from .payloads import (
    SUPPORTED_TYPES,
    DispatchItem,
    TemplatePayload,
    build_free_form_items,
)
from .phone import normalize_phone
from .policy import PolicyDecision, SessionWindowPolicy
from .templates import RenderedTemplate, TemplateRenderer

ClientFactory = Callable[[Tenant], WhatsAppClient]


class OutboundComposer:
    """Composes, dispatches and records outbound messages."""

    def __init__(
        self,
        repository: IGatewayRepository,
        credit_ledger: ICreditLedger,
        media_mirror: MediaMirror,
        client_factory: ClientFactory,
        conversation_cache: IConversationCache | None = None,
        policy: SessionWindowPolicy | None = None,
        renderer: TemplateRenderer | None = None,
        credit_cost: Decimal = settings.template_credit_cost,
    ):
        self.repository = repository
        self.credit_ledger = credit_ledger
        self.media_mirror = media_mirror
        self.client_factory = client_factory
        self.conversation_cache = conversation_cache
        self.policy = policy or SessionWindowPolicy(repository, credit_cost)
        self.renderer = renderer or TemplateRenderer()
        self.credit_cost = credit_cost
        self.logger = get_logger(__name__)

    async def send_message(self, request: SendMessageRequest) -> SendMessageResponse:
        """
        Send one request, possibly as several provider messages.

        Raises:
            GatewayError: Validation, lookup and policy failures before dispatch,
                or ProviderError/StorageError when nothing could be stored
        """
        phone = normalize_phone(request.customer_phone)
        if request.type not in SUPPORTED_TYPES:
            raise UnsupportedMessageType(
                f"Unsupported message type: {request.type!r}",
                details={"supported": sorted(SUPPORTED_TYPES)},
            )

        tenant = await self.repository.get_tenant(request.tenant_id)
        if tenant is None:
            raise TenantNotFound(f"Tenant {request.tenant_id} not found")
        set_request_context(tenant_id=tenant.id)

        customer = await self.repository.get_customer_by_phone(tenant.id, phone)
        if customer is None:
            raise CustomerNotFound(
                f"Customer {phone} not found", details={"customer_phone": phone}
            )
        set_request_context(user_id=customer.phone)

        decision = await self.policy.decide(
            tenant,
            customer,
            request.type,
            is_promotional=request.is_promotional,
            category=request.category,
            template_name=request.template_name,
        )

        client = self.client_factory(tenant)
        media_handler = WhatsAppMediaHandler(client, tenant.id)

        rendered: RenderedTemplate | None = None
        if decision.use_template:
            rendered, items = await self._prepare_template(
                request, decision.template, media_handler
            )
        else:
            items = await self._prepare_free_form(request, tenant, media_handler)

        results = await self._dispatch_all(client, phone, items)
        stored = await self._persist(
            request, tenant, customer, decision, items, results, rendered
        )

        succeeded = [r for r in results if r.success]
        if decision.use_template and succeeded:
            await self._debit(tenant)

        if stored == 0:
            if succeeded:
                raise StorageError(
                    "Message sent but could not be stored",
                    details={"message_ids": [r.message_id for r in succeeded]},
                )
            raise ProviderError(
                "WhatsApp rejected every message",
                details={"per_item_results": [r.model_dump() for r in results]},
            )

        self.logger.info(
            f"Sent {len(succeeded)}/{len(items)} {request.type} message(s) to {phone}"
            + (f" using template '{decision.template.name}'" if rendered else "")
        )
        return SendMessageResponse(
            success=True,
            message_ids=[r.message_id for r in succeeded],
            stored_message_count=stored,
            per_item_results=results,
            used_template=decision.template.name if rendered else None,
        )

    # ---- preparation ------------------------------------------------------
    async def _prepare_free_form(
        self,
        request: SendMessageRequest,
        tenant: Tenant,
        media_handler: WhatsAppMediaHandler,
    ) -> list[DispatchItem]:
        media_ids = request.all_media_ids
        if not media_ids:
            return build_free_form_items(request, [])

        if len(media_ids) > 1 and request.type != "image":
            raise ValidationError(
                "Multiple media items are only supported for images",
                field="media_ids",
            )
        if request.type == "text":
            raise ValidationError(
                "Text messages cannot carry media", field="media_ids"
            )

        mirrored = await self.media_mirror.mirror_batch(
            media_handler, tenant, media_ids, direction="outgoing"
        )
        if mirrored[0].kind.value != request.type:
            await self.media_mirror.discard(mirrored)
            raise MediaTypeMismatch(
                f"Media is {mirrored[0].kind.value}, message type is {request.type}",
                field="type",
            )
        return build_free_form_items(request, mirrored)

    async def _prepare_template(
        self,
        request: SendMessageRequest,
        template: Template,
        media_handler: WhatsAppMediaHandler,
    ) -> tuple[RenderedTemplate, list[DispatchItem]]:
        if request.all_media_ids:
            raise PolicyError(
                "Media cannot be sent while a template is required",
                error_code="TEMPLATE_REQUIRED",
                details={"template": template.name},
            )

        # Fail fast on parameter errors before touching header media
        self.renderer.validate(
            template,
            request.header_params,
            request.template_params,
            request.template_buttons,
            request.media_header,
        )

        media_header = None
        if template.has_media_header:
            media_header = request.media_header or self._example_header(template)
            media_header = await self._resolve_header_media(media_handler, media_header)

        rendered = self.renderer.render(
            template,
            request.header_params,
            request.template_params,
            request.template_buttons,
            media_header,
        )
        return rendered, [DispatchItem(payload=TemplatePayload(template=rendered.to_wire()))]

    @staticmethod
    def _example_header(template: Template) -> MediaHeader:
        handle = template.header.example_media_handle
        header_type = template.header.format.value.lower()
        if handle.startswith(("http://", "https://")):
            return MediaHeader(type=header_type, link=handle)
        return MediaHeader(type=header_type, id=handle)

    async def _resolve_header_media(
        self, media_handler: WhatsAppMediaHandler, header: MediaHeader
    ) -> MediaHeader:
        """
        Turn a header media descriptor into a checked provider media id.

        Existing ids are checked against the header's MIME family. Links are
        downloaded and re-uploaded to the provider.
        """
        expected = header.type.value

        if header.id:
            info = await media_handler.get_media_info(header.id)
            if not info.success:
                raise ProviderError(
                    f"Header media {header.id} not available: {info.error}",
                    details={"error_code": info.error_code},
                )
            kind = classify_mime(info.mime_type)
            if kind.value != expected:
                raise MediaTypeMismatch(
                    f"Header media is {kind.value}, template expects {expected}",
                    field="media_header",
                )
            return header

        download = await media_handler.download_url(header.link, authenticated=False)
        if not download.success:
            raise ProviderError(
                f"Failed to download header media: {download.error}",
                details={"error_code": download.error_code, "link": header.link},
            )
        kind = classify_mime(download.mime_type)
        if kind.value != expected:
            raise MediaTypeMismatch(
                f"Header media is {kind.value}, template expects {expected}",
                field="media_header",
            )

        upload = await media_handler.upload_media_from_bytes(
            download.file_data,
            download.mime_type,
            filename=f"header{extension_for(download.mime_type)}",
        )
        if not upload.success:
            raise ProviderError(
                f"Failed to upload header media: {upload.error}",
                details={"error_code": upload.error_code},
            )
        self.logger.debug(f"Header media re-uploaded as {upload.media_id}")
        return MediaHeader(type=header.type, id=upload.media_id)

    # ---- dispatch ---------------------------------------------------------
    async def _dispatch_all(
        self, client: WhatsAppClient, phone: str, items: list[DispatchItem]
    ) -> list[DispatchResult]:
        to = phone.lstrip("+")
        return list(
            await asyncio.gather(
                *(
                    self._dispatch_one(client, to, index, item)
                    for index, item in enumerate(items)
                )
            )
        )

    async def _dispatch_one(
        self, client: WhatsAppClient, to: str, index: int, item: DispatchItem
    ) -> DispatchResult:
        media_url = item.media.public_url if item.media else None
        try:
            response = await client.send_message(item.payload.to_wire(to))
        except GatewayError as e:
            self.logger.warning(f"Item {index} ({item.payload.type}) rejected: {e.message}")
            return DispatchResult(
                index=index,
                success=False,
                media_url=media_url,
                error=e.message,
                error_details=e.details,
            )
        except Exception as e:
            # One item never aborts its siblings
            self.logger.error(
                f"Item {index} ({item.payload.type}) failed unexpectedly: {e}",
                exc_info=True,
            )
            return DispatchResult(
                index=index,
                success=False,
                media_url=media_url,
                error=f"Unexpected dispatch error: {e}",
            )
        return DispatchResult(
            index=index,
            success=True,
            message_id=response["messages"][0]["id"],
            media_url=media_url,
        )

    # ---- persistence ------------------------------------------------------
    async def _persist(
        self,
        request: SendMessageRequest,
        tenant: Tenant,
        customer: Customer,
        decision: PolicyDecision,
        items: list[DispatchItem],
        results: list[DispatchResult],
        rendered: RenderedTemplate | None,
    ) -> int:
        base_time = utc_now()
        category = decision.template.category if decision.template else request.category
        stored = 0
        orphaned = []

        for item, result in zip(items, results):
            if not result.success:
                if item.media is not None:
                    orphaned.append(item.media)
                continue

            message = self._conversation_row(
                request, tenant, customer, item, result, rendered
            )
            # Fan-out rows keep input order
            message.timestamp = base_time + timedelta(milliseconds=result.index)
            try:
                await self.repository.insert_message(message)
                stored += 1
            except Exception as e:
                self.logger.error(f"Failed to store message {result.message_id}: {e}")
                continue

            try:
                await self.repository.upsert_delivery_log(
                    DeliveryLogEntry(
                        tenant_id=tenant.id,
                        provider_message_id=result.message_id,
                        category=category,
                        status=DeliveryStatus.SENT,
                        updated_at=message.timestamp,
                    )
                )
            except Exception as e:
                self.logger.error(
                    f"Failed to record delivery log for {result.message_id}: {e}"
                )

        if orphaned:
            await self.media_mirror.discard(orphaned)

        if stored and self.conversation_cache is not None:
            try:
                await self.conversation_cache.invalidate(tenant.id, customer.id)
            except Exception as e:
                self.logger.warning(f"Cache invalidation failed: {e}")

        return stored

    @staticmethod
    def _conversation_row(
        request: SendMessageRequest,
        tenant: Tenant,
        customer: Customer,
        item: DispatchItem,
        result: DispatchResult,
        rendered: RenderedTemplate | None,
    ) -> ConversationMessage:
        message = ConversationMessage(
            tenant_id=tenant.id,
            customer_id=customer.id,
            direction=MessageDirection.OUTBOUND,
            provider_message_id=result.message_id,
            is_read=True,
        )
        payload = item.payload
        if payload.type == "template":
            message.body = rendered.rendered_text
            message.template_payload = rendered.envelope_json()
        elif payload.type == "text":
            message.body = payload.body
        else:
            caption = getattr(payload, "caption", None)
            message.body = caption or ""
            message.caption = caption
            message.media_type = item.media.kind
            message.media_url = item.media.public_url
        return message

    async def _debit(self, tenant: Tenant) -> None:
        try:
            balance = await self.credit_ledger.debit(tenant.id, self.credit_cost)
        except Exception as e:
            # The provider already accepted the message
            self.logger.error(f"Credit debit failed for tenant {tenant.id}: {e}")
            return
        self.logger.info(f"Debited {self.credit_cost} credit, balance {balance}")
