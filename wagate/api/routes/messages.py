"""
Outbound message routes.
"""

from fastapi import APIRouter, Depends

from wagate.api.dependencies import get_composer
from wagate.gateway import OutboundComposer
from wagate.messaging.whatsapp.models import SendMessageRequest, SendMessageResponse

router = APIRouter(
    prefix="/api/messages",
    tags=["Messages"],
    responses={
        400: {"description": "Bad Request - Validation or policy failure"},
        404: {"description": "Not Found - Tenant, customer or template"},
        500: {"description": "Internal Server Error - Provider or storage failure"},
    },
)


@router.post("/send", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    composer: OutboundComposer = Depends(get_composer),
) -> SendMessageResponse:
    """
    Send a message to a customer.

    Applies the session-window policy: outside the 24h window, or when the
    message is promotional, an approved template is sent instead and one
    credit is debited.
    """
    return await composer.send_message(request)
