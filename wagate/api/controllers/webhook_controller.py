"""
Webhook controller.

Routes handle HTTP concerns; the controller owns verification, signature
checking and hand-off to the inbound processor.
"""

import json
from typing import Any

from fastapi import HTTPException
from fastapi.responses import PlainTextResponse

from wagate.core.errors import ValidationError
from wagate.core.logging.logger import get_logger
from wagate.gateway import GatewayServices, WebhookProcessingSummary


class WebhookController:
    """WhatsApp webhook verification and delivery processing."""

    def __init__(self, services: GatewayServices):
        self.services = services
        self.logger = get_logger(__name__)

    def verify_webhook(
        self,
        hub_mode: str | None = None,
        hub_verify_token: str | None = None,
        hub_challenge: str | None = None,
    ) -> PlainTextResponse:
        """
        Handle the provider's challenge-response subscription check.

        Returns:
            PlainTextResponse echoing the challenge

        Raises:
            HTTPException: 403 when mode or token do not match
        """
        expected = self.services.settings.whatsapp_verify_token

        if hub_mode != "subscribe" or not hub_challenge:
            self.logger.error(f"Webhook verification with unexpected mode: {hub_mode}")
            raise HTTPException(status_code=403, detail="Webhook verification failed")

        if not expected or hub_verify_token != expected:
            self.logger.error("Invalid verification token received")
            raise HTTPException(status_code=403, detail="Invalid verification token")

        self.logger.info("Webhook verification successful")
        return PlainTextResponse(content=hub_challenge)

    async def process_webhook(
        self, raw_body: bytes, signature: str | None
    ) -> WebhookProcessingSummary:
        """
        Verify, parse and process one delivery.

        Raises:
            SignatureError: Signature missing or wrong (strict mode)
            ValidationError: Body is not a WhatsApp webhook envelope
        """
        self.services.signature_verifier.verify(raw_body, signature)

        payload = self._decode(raw_body)
        envelope = self.services.inbound.parse_envelope(payload)
        return await self.services.inbound.process_shielded(envelope)

    def _decode(self, raw_body: bytes) -> Any:
        try:
            return json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to parse webhook payload: {e}")
            raise ValidationError(
                "Invalid JSON payload", error_code="INVALID_WEBHOOK_PAYLOAD"
            ) from e
