"""
WhatsApp Cloud API client.

One client per tenant per request, sharing the process-wide aiohttp session
created in the application lifespan. Every call carries a bounded timeout.
"""

import asyncio
from typing import Any

import aiohttp

from wagate.core.config.settings import settings
from wagate.core.errors import ProviderError
from wagate.core.logging.logger import get_logger


class WhatsAppUrlBuilder:
    """Builds URLs for WhatsApp Business API endpoints."""

    def __init__(self, base_url: str, api_version: str, phone_number_id: str):
        """Initialize URL builder with configuration.

        Args:
            base_url: Facebook Graph API base URL
            api_version: WhatsApp API version
            phone_number_id: Tenant's WhatsApp Business phone number ID
        """
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.phone_number_id = phone_number_id

    def get_messages_url(self) -> str:
        """Build URL for sending messages."""
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/messages"

    def get_media_url(self, media_id: str | None = None) -> str:
        """Build URL for media operations.

        Args:
            media_id: Optional media ID for specific media operations

        Returns:
            URL for media endpoint
        """
        if media_id:
            return f"{self.base_url}/{self.api_version}/{media_id}"
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/media"

    def get_endpoint_url(self, endpoint: str) -> str:
        """Build URL for any custom endpoint."""
        return f"{self.base_url}/{self.api_version}/{endpoint}"


class WhatsAppFormDataBuilder:
    """Builds form data for WhatsApp multipart requests."""

    @staticmethod
    def build_form_data(
        payload: dict[str, Any], files: dict[str, Any]
    ) -> aiohttp.FormData:
        """Build FormData for multipart/form-data requests.

        Args:
            payload: Data fields to include in the form
            files: Files in format {field_name: (filename, bytes, content_type)}

        Raises:
            ValueError: If file format is invalid
        """
        form = aiohttp.FormData()

        # Data fields go first, the media endpoint is order sensitive
        if payload:
            for key, value in payload.items():
                form.add_field(key, str(value))

        for field_name, file_info in files.items():
            if not (isinstance(file_info, tuple) and len(file_info) == 3):
                raise ValueError(
                    f"Invalid file format for field '{field_name}'. "
                    f"Expected tuple (filename, bytes, content_type)"
                )
            filename, file_content, content_type = file_info
            form.add_field(
                field_name,
                file_content,
                filename=filename,
                content_type=content_type,
            )

        return form


class WhatsAppClient:
    """
    WhatsApp Business API client with dependency injection.

    The aiohttp session is owned by the application; the client never
    creates or closes sessions.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        access_token: str,
        phone_number_id: str,
        logger: Any | None = None,
        api_version: str = settings.api_version,
        base_url: str = settings.base_url,
        timeout_seconds: float = settings.provider_timeout_seconds,
    ):
        """Initialize WhatsApp client.

        Args:
            session: Persistent aiohttp session (managed by FastAPI lifespan)
            access_token: Tenant's WhatsApp Business API access token
            phone_number_id: Tenant's WhatsApp phone number ID
            logger: Pre-configured logger instance
            api_version: WhatsApp API version to use
            base_url: Facebook Graph API base URL
            timeout_seconds: Total timeout per request
        """
        self.session = session
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.logger = logger or get_logger(__name__)
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

        self.url_builder = WhatsAppUrlBuilder(base_url, api_version, phone_number_id)
        self.form_builder = WhatsAppFormDataBuilder()

    def _get_headers(self, include_content_type: bool = True) -> dict[str, str]:
        """Get HTTP headers for WhatsApp API requests."""
        headers = {"Authorization": f"Bearer {self.access_token}"}
        if include_content_type:
            headers["Content-Type"] = "application/json"
        return headers

    async def _raise_provider_error(
        self, response: aiohttp.ClientResponse, url: str
    ) -> None:
        try:
            error_text = await response.text()
        except aiohttp.ClientError:
            error_text = "Error reading response"

        if response.status == 401:
            self.logger.error(
                f"WhatsApp access token rejected for sender {self.phone_number_id} "
                f"(401) - {error_text}"
            )
        else:
            self.logger.error(
                f"HTTP error for sender {self.phone_number_id}: {response.status} - {error_text}"
            )
        self.logger.debug(f"Failed URL: {url}")
        raise ProviderError(
            f"WhatsApp API returned {response.status}",
            details={"status": response.status, "body": error_text},
        )

    async def post_request(
        self,
        payload: dict[str, Any],
        custom_url: str | None = None,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send POST request to WhatsApp API.

        Args:
            payload: JSON payload (or form fields when files are given)
            custom_url: Optional custom URL (defaults to messages endpoint)
            files: Optional files for multipart upload

        Returns:
            JSON response from WhatsApp API

        Raises:
            ProviderError: On HTTP errors, timeouts or connection failures
        """
        url = custom_url or self.url_builder.get_messages_url()

        if files:
            # aiohttp sets the multipart Content-Type
            request_kwargs = {
                "headers": self._get_headers(include_content_type=False),
                "data": self.form_builder.build_form_data(payload, files),
            }
            self.logger.debug(f"Sending multipart request to {url}: {list(files)}")
        else:
            request_kwargs = {"headers": self._get_headers(), "json": payload}
            self.logger.debug(f"Sending JSON request to {url}: {payload}")

        try:
            async with self.session.post(
                url, timeout=self.timeout, **request_kwargs
            ) as response:
                if response.status >= 400:
                    await self._raise_provider_error(response, url)
                response_data = await response.json()
                self.logger.debug(f"Response: {response_data}")
                return response_data
        except asyncio.TimeoutError as e:
            self.logger.error(f"WhatsApp request to {url} timed out")
            raise ProviderError("WhatsApp API request timed out") from e
        except aiohttp.ClientError as e:
            self.logger.error(f"WhatsApp request to {url} failed: {e}")
            raise ProviderError(f"WhatsApp API request failed: {e}") from e
        except ValueError as e:
            self.logger.error(f"WhatsApp response from {url} is not valid JSON: {e}")
            raise ProviderError("WhatsApp API returned an unreadable response") from e

    async def get_request(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Send GET request to WhatsApp API.

        Args:
            endpoint: API endpoint (without base URL)
            params: Optional query parameters

        Raises:
            ProviderError: On HTTP errors, timeouts or connection failures
        """
        url = self.url_builder.get_endpoint_url(endpoint)

        try:
            async with self.session.get(
                url, headers=self._get_headers(), params=params, timeout=self.timeout
            ) as response:
                if response.status >= 400:
                    await self._raise_provider_error(response, url)
                response_data = await response.json()
                self.logger.debug(f"GET {url} returned: {response_data}")
                return response_data
        except asyncio.TimeoutError as e:
            self.logger.error(f"WhatsApp GET {url} timed out")
            raise ProviderError("WhatsApp API request timed out") from e
        except aiohttp.ClientError as e:
            self.logger.error(f"WhatsApp GET {url} failed: {e}")
            raise ProviderError(f"WhatsApp API request failed: {e}") from e
        except ValueError as e:
            self.logger.error(f"WhatsApp GET {url} returned invalid JSON: {e}")
            raise ProviderError("WhatsApp API returned an unreadable response") from e

    async def get_request_stream(
        self, url: str, authenticated: bool = True
    ) -> aiohttp.ClientResponse:
        """Perform streaming GET request.

        The caller owns the response and must release it. The bearer token is
        only attached for provider-hosted URLs (authenticated=True).

        Raises:
            aiohttp.ClientError: For HTTP request failures
        """
        headers = self._get_headers(include_content_type=False) if authenticated else {}
        response = await self.session.get(url, headers=headers, timeout=self.timeout)
        self.logger.debug(f"Streaming GET {url} started. Status: {response.status}")
        return response

    async def send_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST a message payload and return the provider response.

        Raises:
            ProviderError: If the provider rejects the message or returns no id
        """
        response = await self.post_request(payload)
        messages = response.get("messages") or []
        if not messages or not messages[0].get("id"):
            raise ProviderError(
                "WhatsApp API response carried no message id",
                details={"body": response},
            )
        return response
