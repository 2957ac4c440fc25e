"""
WhatsApp media operations for one tenant.

Implements the Cloud API media endpoints used by the gateway:
- GET /MEDIA_ID (descriptor with short-lived download URL)
- GET /MEDIA_URL (authenticated download)
- POST /PHONE_NUMBER_ID/media (upload, mints a new media id)

Every operation returns a result model instead of raising, so callers decide
whether a failure is fatal (outbound) or logged (inbound).
"""

import mimetypes

from wagate.core.logging.logger import get_logger
from wagate.domain.models.media_result import (
    MediaDownloadResult,
    MediaInfoResult,
    MediaUploadResult,
)
from wagate.messaging.whatsapp.client.whatsapp_client import WhatsAppClient

MB = 1024 * 1024

EXTENSION_MAP: dict[str, str] = {
    "audio/aac": ".aac",
    "audio/amr": ".amr",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
    "audio/ogg": ".ogg",
    "text/plain": ".txt",
    "text/csv": ".csv",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "video/3gpp": ".3gp",
    "video/mp4": ".mp4",
}


def base_mime(mime_type: str | None) -> str:
    """Lowercased MIME type without parameters ("audio/ogg; codecs=opus" -> "audio/ogg")."""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def extension_for(mime_type: str) -> str:
    """File extension (with dot) for a MIME type, falling back to mimetypes."""
    mime = base_mime(mime_type)
    if mime in EXTENSION_MAP:
        return EXTENSION_MAP[mime]
    return mimetypes.guess_extension(mime) or ".bin"


def max_size_for(mime_type: str) -> int:
    """Maximum file size accepted by WhatsApp for a MIME type."""
    mime = base_mime(mime_type)
    if mime.startswith(("audio/", "video/")):
        return 16 * MB
    if mime == "image/webp":
        return 500 * 1024  # animated stickers
    if mime.startswith("image/"):
        return 5 * MB
    return 100 * MB


class WhatsAppMediaHandler:
    """Media handler bound to one tenant's WhatsApp client."""

    def __init__(self, client: WhatsAppClient, tenant_id: str):
        """
        Args:
            client: Configured WhatsApp client for the tenant
            tenant_id: Tenant identifier used in results and logs
        """
        self.client = client
        self._tenant_id = tenant_id
        self.logger = get_logger(__name__)

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def validate_file_size(self, file_size: int, mime_type: str) -> bool:
        return file_size <= max_size_for(mime_type)

    async def get_media_info(self, media_id: str) -> MediaInfoResult:
        """
        Retrieve the media descriptor (download URL, MIME type, size).

        Implements GET /MEDIA_ID.
        """
        try:
            self.logger.debug(f"Fetching media info for ID: {media_id}")
            result = await self.client.get_request(endpoint=f"{media_id}/")

            if not result or "url" not in result:
                return MediaInfoResult(
                    success=False,
                    media_id=media_id,
                    error=f"Invalid response for media ID {media_id}: {result}",
                    error_code="INVALID_RESPONSE",
                    tenant_id=self._tenant_id,
                )

            file_size = result.get("file_size")
            return MediaInfoResult(
                success=True,
                media_id=media_id,
                url=result["url"],
                mime_type=result.get("mime_type"),
                file_size=int(file_size) if file_size is not None else None,
                sha256=result.get("sha256"),
                tenant_id=self._tenant_id,
            )

        except Exception as e:
            self.logger.error(f"Error getting info for media ID {media_id}: {e}")
            return MediaInfoResult(
                success=False,
                media_id=media_id,
                error=str(e),
                error_code="INFO_RETRIEVAL_FAILED",
                tenant_id=self._tenant_id,
            )

    async def download_url(
        self,
        url: str,
        authenticated: bool = True,
        fallback_mime_type: str | None = None,
    ) -> MediaDownloadResult:
        """
        Download bytes from a URL, enforcing WhatsApp size limits while streaming.

        Args:
            url: Provider download URL or any public link
            authenticated: Attach the tenant bearer token (provider URLs only)
            fallback_mime_type: MIME type to use when the response has none
        """
        try:
            response = await self.client.get_request_stream(url, authenticated)
            try:
                if response.status != 200:
                    error_text = await response.text()
                    return MediaDownloadResult(
                        success=False,
                        error=f"Download failed: {response.status} - {error_text}",
                        error_code=f"HTTP_{response.status}",
                        tenant_id=self._tenant_id,
                    )

                mime_type = base_mime(
                    response.headers.get("content-type") or fallback_mime_type
                )
                if not mime_type or mime_type == "application/octet-stream":
                    # Sniff from the URL path for generic links
                    mime_type = (
                        base_mime(mimetypes.guess_type(url.split("?", 1)[0])[0])
                        or base_mime(fallback_mime_type)
                        or mime_type
                    )

                max_size = max_size_for(mime_type)
                try:
                    content_length = int(response.headers.get("content-length", "0"))
                except ValueError:
                    content_length = 0
                if content_length > max_size:
                    return MediaDownloadResult(
                        success=False,
                        error=f"Media file size ({content_length} bytes) exceeds max allowed ({max_size} bytes) for type {mime_type}",
                        error_code="FILE_SIZE_EXCEEDED",
                        tenant_id=self._tenant_id,
                    )

                data = bytearray()
                async for chunk in response.content.iter_chunked(8192):
                    if chunk:
                        data.extend(chunk)
                        if len(data) > max_size:
                            return MediaDownloadResult(
                                success=False,
                                error=f"Download aborted: file size exceeded max ({max_size}) bytes for type {mime_type}",
                                error_code="FILE_SIZE_EXCEEDED",
                                tenant_id=self._tenant_id,
                            )

                return MediaDownloadResult(
                    success=True,
                    file_data=bytes(data),
                    mime_type=mime_type,
                    file_size=len(data),
                    tenant_id=self._tenant_id,
                )
            finally:
                if not response.closed:
                    response.release()

        except Exception as e:
            self.logger.error(f"Error downloading media from {url}: {e}")
            return MediaDownloadResult(
                success=False,
                error=str(e),
                error_code="DOWNLOAD_FAILED",
                tenant_id=self._tenant_id,
            )

    async def download_media(self, media_id: str) -> MediaDownloadResult:
        """
        Download WhatsApp media by id.

        Implements workflow: GET /MEDIA_ID -> GET /MEDIA_URL
        """
        info = await self.get_media_info(media_id)
        if not info.success:
            return MediaDownloadResult(
                success=False,
                error=f"Failed to get media URL for ID {media_id}: {info.error}",
                error_code="MEDIA_INFO_FAILED",
                tenant_id=self._tenant_id,
            )

        self.logger.debug(f"Starting download for media ID: {media_id}")
        return await self.download_url(
            info.url, authenticated=True, fallback_mime_type=info.mime_type
        )

    async def upload_media_from_bytes(
        self, file_data: bytes, media_type: str, filename: str
    ) -> MediaUploadResult:
        """
        Upload bytes to WhatsApp and mint a new media id.

        Implements POST /PHONE_NUMBER_ID/media.
        """
        try:
            mime_type = base_mime(media_type)
            file_size = len(file_data)
            if not self.validate_file_size(file_size, mime_type):
                return MediaUploadResult(
                    success=False,
                    error=f"File size ({file_size} bytes) exceeds the limit ({max_size_for(mime_type)} bytes) for type {mime_type}",
                    error_code="FILE_SIZE_EXCEEDED",
                    tenant_id=self._tenant_id,
                )

            data = {"messaging_product": "whatsapp", "type": mime_type}
            upload_url = self.client.url_builder.get_media_url()
            self.logger.debug(f"Uploading media from bytes: {filename}")

            result = await self.client.post_request(
                payload=data,
                custom_url=upload_url,
                files={"file": (filename, file_data, mime_type)},
            )

            media_id = result.get("id")
            if not media_id:
                return MediaUploadResult(
                    success=False,
                    error=f"No media ID in response for {filename}: {result}",
                    error_code="NO_MEDIA_ID",
                    tenant_id=self._tenant_id,
                )

            self.logger.info(f"Uploaded {filename} to WhatsApp (ID: {media_id})")
            return MediaUploadResult(
                success=True,
                media_id=media_id,
                file_size=file_size,
                mime_type=mime_type,
                tenant_id=self._tenant_id,
            )

        except Exception as e:
            self.logger.error(f"Failed to upload {filename} from bytes: {e}")
            return MediaUploadResult(
                success=False,
                error=str(e),
                error_code="UPLOAD_FAILED",
                tenant_id=self._tenant_id,
            )
