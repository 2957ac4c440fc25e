"""
Tests for phone normalization.
"""

import pytest

from wagate.core.errors import InvalidPhoneFormat
from wagate.gateway.phone import normalize_phone, phone_from_wa_id


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("(555) 123-4567", "+15551234567"),
            ("555.123.4567", "+15551234567"),
            ("+1 555 123 4567", "+15551234567"),
            ("+44 20 7946 0958", "+442079460958"),
            ("521234567890123", "+521234567890123"),
        ],
    )
    def test_normalizes_to_e164(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", ["", "12345", "abc", "1234567890123456"])
    def test_rejects_invalid_numbers(self, raw):
        with pytest.raises(InvalidPhoneFormat) as exc_info:
            normalize_phone(raw)

        assert exc_info.value.error_code == "INVALID_PHONE_FORMAT"
        assert exc_info.value.details["field"] == "customer_phone"


def test_phone_from_wa_id_keeps_digits_only():
    assert phone_from_wa_id("15551234567") == "+15551234567"
