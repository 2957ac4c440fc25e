"""
Webhook signature verification.

WhatsApp signs every POST with HMAC-SHA256 of the raw body keyed by the app
secret and sends it as `X-Hub-Signature-256: sha256=<hex>`.
"""

import hashlib
import hmac

from wagate.core.errors import SignatureError
from wagate.core.logging.logger import get_logger

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    """Header value WhatsApp would send for payload."""
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str | None, secret: str | None) -> bool:
    """
    Validate a WhatsApp webhook signature.

    Returns:
        True only when a secret is configured and the signature matches
    """
    if not secret or not signature:
        return False
    signature = signature.strip()
    if not signature.startswith(SIGNATURE_PREFIX):
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, signature)


class SignatureVerifier:
    """
    Fail-closed signature check for webhook POSTs.

    Non-strict mode only logs failures and is refused outside DEV.
    """

    def __init__(self, app_secret: str | None, strict: bool = True, environment: str = "DEV"):
        if not strict and environment.upper() != "DEV":
            raise ValueError("Non-strict webhook signature mode is only allowed in DEV")
        self.app_secret = app_secret
        self.strict = strict
        self.logger = get_logger(__name__)

    def verify(self, payload: bytes, signature: str | None) -> None:
        """
        Raises:
            SignatureError: Missing secret, missing header or mismatch (strict mode)
        """
        if verify_signature(payload, signature, self.app_secret):
            return

        if not self.app_secret:
            reason = "webhook app secret not configured"
        elif not signature:
            reason = "missing X-Hub-Signature-256 header"
        else:
            reason = "signature mismatch"

        if self.strict:
            self.logger.error(f"Webhook signature rejected: {reason}")
            raise SignatureError(f"Invalid webhook signature: {reason}")

        self.logger.warning(f"Webhook signature not verified ({reason}), continuing in DEV mode")
