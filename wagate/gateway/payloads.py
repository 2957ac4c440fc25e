"""
Outbound payload variants.

One variant per message type, discriminated by `type`, each serializing
itself to the Cloud API message body. Free-form variants are produced by a
per-type builder registry; template payloads come from the renderer.
"""

from collections.abc import Callable
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from wagate.core.errors import UnsupportedMessageType, ValidationError
from wagate.domain.models import MirroredMedia
from wagate.messaging.whatsapp.models.send_models import SendMessageRequest


def _envelope(to: str, message_type: str, content: dict[str, Any]) -> dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": message_type,
        message_type: content,
    }


class TextPayload(BaseModel):
    type: Literal["text"] = "text"
    body: str = Field(..., min_length=1, max_length=4096)
    preview_url: bool = False

    def to_wire(self, to: str) -> dict[str, Any]:
        return _envelope(to, "text", {"body": self.body, "preview_url": self.preview_url})


class ImagePayload(BaseModel):
    type: Literal["image"] = "image"
    media_id: str
    caption: str | None = None

    def to_wire(self, to: str) -> dict[str, Any]:
        content = {"id": self.media_id}
        if self.caption:
            content["caption"] = self.caption
        return _envelope(to, "image", content)


class VideoPayload(BaseModel):
    type: Literal["video"] = "video"
    media_id: str
    caption: str | None = None

    def to_wire(self, to: str) -> dict[str, Any]:
        content = {"id": self.media_id}
        if self.caption:
            content["caption"] = self.caption
        return _envelope(to, "video", content)


class AudioPayload(BaseModel):
    # WhatsApp rejects captions on audio
    type: Literal["audio"] = "audio"
    media_id: str

    def to_wire(self, to: str) -> dict[str, Any]:
        return _envelope(to, "audio", {"id": self.media_id})


class DocumentPayload(BaseModel):
    type: Literal["document"] = "document"
    media_id: str
    caption: str | None = None
    filename: str | None = None

    def to_wire(self, to: str) -> dict[str, Any]:
        content = {"id": self.media_id}
        if self.caption:
            content["caption"] = self.caption
        if self.filename:
            content["filename"] = self.filename
        return _envelope(to, "document", content)


class TemplatePayload(BaseModel):
    type: Literal["template"] = "template"
    template: dict[str, Any] = Field(..., description="name, language, components")

    def to_wire(self, to: str) -> dict[str, Any]:
        return _envelope(to, "template", self.template)


OutboundPayload = Annotated[
    Union[
        TextPayload,
        ImagePayload,
        VideoPayload,
        AudioPayload,
        DocumentPayload,
        TemplatePayload,
    ],
    Field(discriminator="type"),
]


class DispatchItem(BaseModel):
    """One payload to dispatch, with the mirror it depends on (if any)."""

    payload: OutboundPayload
    media: MirroredMedia | None = None


# ---- free-form builders ---------------------------------------------------

PayloadBuilder = Callable[[SendMessageRequest, list[MirroredMedia]], list[DispatchItem]]


def _shared_caption(request: SendMessageRequest) -> str | None:
    caption = (request.caption or request.message or "").strip()
    return caption or None


def _require_media(request: SendMessageRequest, mirrored: list[MirroredMedia]) -> None:
    if not mirrored:
        raise ValidationError(
            f"media_id or media_ids is required for {request.type} messages",
            field="media_ids",
        )


def _build_text(request: SendMessageRequest, mirrored: list[MirroredMedia]) -> list[DispatchItem]:
    body = (request.message or "").strip()
    if not body:
        raise ValidationError("message is required for text messages", field="message")
    return [DispatchItem(payload=TextPayload(body=body))]


def _build_image(request: SendMessageRequest, mirrored: list[MirroredMedia]) -> list[DispatchItem]:
    _require_media(request, mirrored)
    caption = _shared_caption(request)
    return [
        DispatchItem(
            payload=ImagePayload(media_id=media.provider_media_id, caption=caption),
            media=media,
        )
        for media in mirrored
    ]


def _build_video(request: SendMessageRequest, mirrored: list[MirroredMedia]) -> list[DispatchItem]:
    _require_media(request, mirrored)
    caption = _shared_caption(request)
    return [
        DispatchItem(
            payload=VideoPayload(media_id=media.provider_media_id, caption=caption),
            media=media,
        )
        for media in mirrored
    ]


def _build_audio(request: SendMessageRequest, mirrored: list[MirroredMedia]) -> list[DispatchItem]:
    _require_media(request, mirrored)
    return [
        DispatchItem(payload=AudioPayload(media_id=media.provider_media_id), media=media)
        for media in mirrored
    ]


def _build_document(
    request: SendMessageRequest, mirrored: list[MirroredMedia]
) -> list[DispatchItem]:
    _require_media(request, mirrored)
    caption = _shared_caption(request)
    return [
        DispatchItem(
            payload=DocumentPayload(
                media_id=media.provider_media_id,
                caption=caption,
                filename=request.filename,
            ),
            media=media,
        )
        for media in mirrored
    ]


FREE_FORM_BUILDERS: dict[str, PayloadBuilder] = {
    "text": _build_text,
    "image": _build_image,
    "video": _build_video,
    "audio": _build_audio,
    "document": _build_document,
}

SUPPORTED_TYPES = frozenset(FREE_FORM_BUILDERS) | {"template"}


def build_free_form_items(
    request: SendMessageRequest, mirrored: list[MirroredMedia]
) -> list[DispatchItem]:
    """
    Build free-form dispatch items for a request.

    Raises:
        UnsupportedMessageType: Unknown message type
        ValidationError: Missing message text or media
    """
    builder = FREE_FORM_BUILDERS.get(request.type)
    if builder is None:
        raise UnsupportedMessageType(
            f"Unsupported message type: {request.type!r}",
            details={"supported": sorted(SUPPORTED_TYPES)},
        )
    return builder(request, mirrored)
