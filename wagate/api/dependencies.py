"""
FastAPI dependencies.

Services are built in the lifespan and stored on app.state; routes receive
them through these providers so tests can override them.
"""

from fastapi import Depends, Request

from wagate.gateway import GatewayServices, InboundWebhookProcessor, OutboundComposer

from .controllers.webhook_controller import WebhookController


def get_services(request: Request) -> GatewayServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Gateway services not initialized - app lifespan has not run")
    return services


def get_composer(services: GatewayServices = Depends(get_services)) -> OutboundComposer:
    return services.composer


def get_inbound(
    services: GatewayServices = Depends(get_services),
) -> InboundWebhookProcessor:
    return services.inbound


def get_webhook_controller(
    services: GatewayServices = Depends(get_services),
) -> WebhookController:
    return WebhookController(services)
