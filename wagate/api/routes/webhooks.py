"""
WhatsApp webhook routes.

GET handles the subscription challenge, POST receives message and status
deliveries. Processing errors for individual items never fail the delivery;
the provider gets 200 "OK" so it stops retrying.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from wagate.api.controllers.webhook_controller import WebhookController
from wagate.api.dependencies import get_webhook_controller

SIGNATURE_HEADER = "X-Hub-Signature-256"

router = APIRouter(
    prefix="/webhook",
    tags=["Webhooks"],
    responses={
        400: {"description": "Bad Request - Invalid webhook payload"},
        401: {"description": "Unauthorized - Invalid webhook signature"},
        403: {"description": "Forbidden - Webhook verification failed"},
        500: {"description": "Internal Server Error"},
    },
)


@router.get("/whatsapp")
async def verify_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
    controller: WebhookController = Depends(get_webhook_controller),
):
    """Echo hub.challenge when hub.verify_token matches the configured token."""
    return controller.verify_webhook(
        hub_mode=hub_mode,
        hub_verify_token=hub_verify_token,
        hub_challenge=hub_challenge,
    )


@router.post("/whatsapp")
async def process_webhook(
    request: Request,
    controller: WebhookController = Depends(get_webhook_controller),
):
    """
    Receive a WhatsApp delivery.

    The signature is checked against the raw body before anything is parsed.
    """
    raw_body = await request.body()
    await controller.process_webhook(raw_body, request.headers.get(SIGNATURE_HEADER))
    return PlainTextResponse(content="OK")
