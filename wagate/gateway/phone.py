"""Phone number normalization to canonical E.164."""

import re

from wagate.core.errors import InvalidPhoneFormat

E164_PATTERN = re.compile(r"^\+\d{10,15}$")
_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """
    Normalize a caller-supplied phone number.

    Non-digits are stripped; a bare 10-digit number is treated as a North
    American number and gets a leading country code 1.

    Raises:
        InvalidPhoneFormat: If the result is not 10-15 digits
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if len(digits) == 10:
        digits = "1" + digits
    phone = f"+{digits}"
    if not E164_PATTERN.match(phone):
        raise InvalidPhoneFormat(
            f"Invalid phone number format: {raw!r}", field="customer_phone"
        )
    return phone


def phone_from_wa_id(wa_id: str) -> str:
    """Canonical phone for a webhook sender id (digits only, no normalization)."""
    return "+" + _NON_DIGITS.sub("", wa_id)
