"""
Media mirror.

Provider media URLs expire within minutes, so every media object that ends
up in a conversation is copied into durable storage:

    GET /MEDIA_ID -> GET /MEDIA_URL -> put_object(key) -> public URL

Keys are namespaced per tenant:
    {namespace_prefix}/{incoming|outgoing}/{epoch_ms}_{uuid}{ext}

Batch mirroring is all-or-nothing: any failure or timeout deletes every
object the batch already stored.
"""

import asyncio
import time
from typing import Literal
from uuid import uuid4

from wagate.core.config.settings import settings
from wagate.core.errors import (
    GatewayError,
    MixedMediaFormats,
    ProviderError,
    StorageError,
    UnsupportedMediaType,
    ValidationError,
)
from wagate.core.logging.logger import get_logger
from wagate.domain.interfaces import IObjectStorage
from wagate.domain.models import MediaKind, MirroredMedia, Tenant
from wagate.messaging.whatsapp.handlers.whatsapp_media_handler import (
    WhatsAppMediaHandler,
    base_mime,
    extension_for,
)

Direction = Literal["incoming", "outgoing"]


def classify_mime(mime_type: str | None) -> MediaKind:
    """
    Media format for a MIME type.

    Raises:
        UnsupportedMediaType: For anything outside image/video/audio/document
    """
    mime = base_mime(mime_type)
    family = mime.split("/", 1)[0]
    if family == "image":
        return MediaKind.IMAGE
    if family == "video":
        return MediaKind.VIDEO
    if family == "audio":
        return MediaKind.AUDIO
    if family in ("application", "text"):
        return MediaKind.DOCUMENT
    raise UnsupportedMediaType(
        f"Unsupported media type: {mime_type!r}", details={"mime_type": mime_type}
    )


def build_storage_key(namespace_prefix: str, direction: Direction, mime_type: str) -> str:
    epoch_ms = int(time.time() * 1000)
    return f"{namespace_prefix}/{direction}/{epoch_ms}_{uuid4().hex}{extension_for(mime_type)}"


class MediaMirror:
    """Copies provider-hosted media into object storage."""

    def __init__(
        self,
        storage: IObjectStorage,
        batch_limit: int = settings.media_batch_limit,
        timeout_seconds: float = settings.media_timeout_seconds,
    ):
        self.storage = storage
        self.batch_limit = batch_limit
        self.timeout_seconds = timeout_seconds
        self.logger = get_logger(__name__)

    async def mirror(
        self,
        media_handler: WhatsAppMediaHandler,
        tenant: Tenant,
        media_id: str | None = None,
        url: str | None = None,
        direction: Direction = "incoming",
    ) -> MirroredMedia:
        """
        Mirror one media object given its provider id or a direct URL.

        Raises:
            ProviderError: Descriptor or download failed, or timed out
            UnsupportedMediaType: MIME type outside the supported families
            StorageError: Object storage rejected the upload
        """
        try:
            return await asyncio.wait_for(
                self._mirror_one(media_handler, tenant, media_id, url, direction),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Media mirror timed out after {self.timeout_seconds}s",
                details={"media_id": media_id, "url": url},
            ) from e

    async def mirror_batch(
        self,
        media_handler: WhatsAppMediaHandler,
        tenant: Tenant,
        media_ids: list[str],
        direction: Direction = "outgoing",
    ) -> list[MirroredMedia]:
        """
        Mirror several media ids concurrently, all-or-nothing.

        Results follow the order of media_ids. Every item must resolve to the
        same media format.

        Raises:
            ValidationError: Empty batch or more ids than the batch limit
            MixedMediaFormats: Items resolved to different formats
            GatewayError: First item failure, after rollback
        """
        if not media_ids:
            raise ValidationError("At least one media id is required", field="media_ids")
        if len(media_ids) > self.batch_limit:
            raise ValidationError(
                f"At most {self.batch_limit} media items per message",
                field="media_ids",
                details={"limit": self.batch_limit, "received": len(media_ids)},
            )

        results = await asyncio.gather(
            *(
                self.mirror(media_handler, tenant, media_id=media_id, direction=direction)
                for media_id in media_ids
            ),
            return_exceptions=True,
        )

        stored = [r for r in results if isinstance(r, MirroredMedia)]
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            await self.discard(stored)
            self.logger.error(
                f"Media batch failed ({len(failures)}/{len(media_ids)} items), "
                f"rolled back {len(stored)} object(s)"
            )
            first = failures[0]
            if isinstance(first, GatewayError):
                raise first
            raise StorageError(f"Media batch failed: {first}") from first

        kinds = {item.kind for item in stored}
        if len(kinds) > 1:
            await self.discard(stored)
            raise MixedMediaFormats(
                "All media items must share one format",
                field="media_ids",
                details={"formats": sorted(kind.value for kind in kinds)},
            )

        return stored

    async def discard(self, items: list[MirroredMedia]) -> None:
        """Best-effort delete of mirrored objects."""
        await self._discard_keys([item.storage_key for item in items])

    async def _discard_keys(self, keys: list[str]) -> None:
        for key in keys:
            try:
                await self.storage.delete_object(key)
            except Exception as e:
                self.logger.warning(f"Failed to delete mirrored object {key}: {e}")

    async def _mirror_one(
        self,
        media_handler: WhatsAppMediaHandler,
        tenant: Tenant,
        media_id: str | None,
        url: str | None,
        direction: Direction,
    ) -> MirroredMedia:
        if media_id:
            download = await media_handler.download_media(media_id)
        elif url:
            download = await media_handler.download_url(url, authenticated=False)
        else:
            raise ValidationError("Media mirror needs a media id or a URL")

        if not download.success:
            raise ProviderError(
                f"Failed to download media {media_id or url}: {download.error}",
                details={"error_code": download.error_code, "media_id": media_id},
            )

        mime_type = base_mime(download.mime_type)
        kind = classify_mime(mime_type)
        key = build_storage_key(tenant.namespace_prefix, direction, mime_type)

        try:
            public_url = await self.storage.put_object(key, download.file_data, mime_type)
        except asyncio.CancelledError:
            # Timed out mid-upload; the object may already exist
            await self._discard_keys([key])
            raise
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to store media {key}: {e}") from e

        self.logger.info(
            f"Mirrored {kind.value} {media_id or url} -> {key} ({download.file_size} bytes)"
        )
        return MirroredMedia(
            storage_key=key,
            public_url=public_url,
            mime_type=mime_type,
            kind=kind,
            file_size=download.file_size or len(download.file_data),
            provider_media_id=media_id,
        )
