"""
Gateway error taxonomy.

Every error carries a stable error_code; the API layer maps codes to HTTP
status through ERROR_CODE_MAPPING and renders {error, error_code, details}.
"""

from typing import Any


class GatewayError(Exception):
    """Base class for errors surfaced to outbound API callers."""

    default_code = "GATEWAY_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(GatewayError):
    """Malformed or missing request fields (user-correctable)."""

    default_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        if field is not None:
            details = {"field": field, **(details or {})}
        super().__init__(message, error_code=error_code, details=details)
        self.field = field


class InvalidPhoneFormat(ValidationError):
    default_code = "INVALID_PHONE_FORMAT"


class TemplateParamMismatch(ValidationError):
    default_code = "TEMPLATE_PARAM_MISMATCH"


class MixedMediaFormats(ValidationError):
    default_code = "MIXED_MEDIA_FORMATS"


class MediaTypeMismatch(ValidationError):
    default_code = "MEDIA_TYPE_MISMATCH"


class NotFoundError(GatewayError):
    """Tenant, customer, template or configuration absent."""

    default_code = "NOT_FOUND"
    status_code = 404


class TenantNotFound(NotFoundError):
    default_code = "TENANT_NOT_FOUND"


class CustomerNotFound(NotFoundError):
    default_code = "CUSTOMER_NOT_FOUND"


class TemplateUnavailable(NotFoundError):
    default_code = "TEMPLATE_UNAVAILABLE"


class PolicyError(GatewayError):
    """Session-window or credit rule violated."""

    default_code = "POLICY_VIOLATION"
    status_code = 400


class InsufficientCredit(PolicyError):
    default_code = "INSUFFICIENT_CREDIT"


class ProviderError(GatewayError):
    """Messaging API rejected the request or timed out."""

    default_code = "PROVIDER_ERROR"
    status_code = 500


class StorageError(GatewayError):
    """Media mirror or persistence failure."""

    default_code = "STORAGE_ERROR"
    status_code = 500


class UnsupportedError(GatewayError):
    """Unknown message type or MIME type."""

    default_code = "UNSUPPORTED"
    status_code = 400


class UnsupportedMessageType(UnsupportedError):
    default_code = "UNSUPPORTED_MESSAGE_TYPE"


class UnsupportedMediaType(UnsupportedError):
    default_code = "UNSUPPORTED_MEDIA_TYPE"


class SignatureError(GatewayError):
    """Webhook signature missing or invalid."""

    default_code = "INVALID_SIGNATURE"
    status_code = 401


class InsufficientFundsError(Exception):
    """Raised by credit ledgers when a debit would make the balance negative."""

    def __init__(self, tenant_id: str, balance, amount):
        super().__init__(
            f"Tenant {tenant_id} has {balance} credits, cannot debit {amount}"
        )
        self.tenant_id = tenant_id
        self.balance = balance
        self.amount = amount


# Error code to HTTP status code mapping, for codes raised outside the
# class hierarchy (e.g. media handler result codes)
ERROR_CODE_MAPPING: dict[str, int] = {
    # Validation errors (400 Bad Request)
    "VALIDATION_ERROR": 400,
    "INVALID_PHONE_FORMAT": 400,
    "TEMPLATE_PARAM_MISMATCH": 400,
    "MIXED_MEDIA_FORMATS": 400,
    "MEDIA_TYPE_MISMATCH": 400,
    "INSUFFICIENT_CREDIT": 400,
    "UNSUPPORTED_MESSAGE_TYPE": 400,
    "UNSUPPORTED_MEDIA_TYPE": 400,
    "MIME_TYPE_UNSUPPORTED": 400,
    "FILE_SIZE_EXCEEDED": 400,
    # Signature errors (401 Unauthorized)
    "INVALID_SIGNATURE": 401,
    # Lookup errors (404 Not Found)
    "TENANT_NOT_FOUND": 404,
    "CUSTOMER_NOT_FOUND": 404,
    "TEMPLATE_UNAVAILABLE": 404,
    # Server errors (500 Internal Server Error)
    "PROVIDER_ERROR": 500,
    "STORAGE_ERROR": 500,
    "DOWNLOAD_FAILED": 500,
    "UPLOAD_FAILED": 500,
    "INFO_RETRIEVAL_FAILED": 500,
}


def map_error_to_status(error_code: str | None, default_status: int = 400) -> int:
    """Map error code to HTTP status code.

    Args:
        error_code: The gateway or media-handler error code
        default_status: Default status code if error code is not mapped

    Returns:
        HTTP status code corresponding to the error code
    """
    if error_code is None:
        return default_status
    return ERROR_CODE_MAPPING.get(error_code, default_status)
