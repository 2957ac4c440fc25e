"""
Media result models.

Provider media calls return result objects (success flag plus error_code)
instead of raising; the media mirror turns failed results into gateway errors.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .conversation import MediaKind, utc_now


class MediaInfoResult(BaseModel):
    """Result of GET /{media_id}.

    Based on WhatsApp Cloud API response:
    {
        "messaging_product": "whatsapp",
        "url": "<URL>",
        "mime_type": "<MIME_TYPE>",
        "sha256": "<HASH>",
        "file_size": "<FILE_SIZE>",
        "id": "<MEDIA_ID>"
    }
    """

    success: bool
    media_id: str | None = None
    url: str | None = None
    mime_type: str | None = None
    file_size: int | None = None
    sha256: str | None = None
    error: str | None = None
    error_code: str | None = None
    retrieved_at: datetime = Field(default_factory=utc_now)
    tenant_id: str | None = None


class MediaDownloadResult(BaseModel):
    """Result of downloading media bytes."""

    success: bool
    file_data: bytes | None = None
    mime_type: str | None = None
    file_size: int | None = None
    error: str | None = None
    error_code: str | None = None
    downloaded_at: datetime = Field(default_factory=utc_now)
    tenant_id: str | None = None


class MediaUploadResult(BaseModel):
    """Result of POST /{phone_number_id}/media.

    Based on WhatsApp Cloud API response: {"id": "<MEDIA_ID>"}
    """

    success: bool
    media_id: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    error: str | None = None
    error_code: str | None = None
    uploaded_at: datetime = Field(default_factory=utc_now)
    tenant_id: str | None = None


class MirroredMedia(BaseModel):
    """A media object re-hosted in durable storage."""

    storage_key: str
    public_url: str
    mime_type: str
    kind: MediaKind
    file_size: int
    provider_media_id: str | None = None
