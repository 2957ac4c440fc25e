"""
Tests for settings, error mapping and context logging.
"""

import logging
from decimal import Decimal

import pytest

from wagate.core.config.settings import Settings
from wagate.core.errors import (
    InsufficientCredit,
    ProviderError,
    TemplateUnavailable,
    ValidationError,
    map_error_to_status,
)
from wagate.core.logging.context import clear_request_context, set_request_context
from wagate.core.logging.logger import get_logger


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TEMPLATE_CREDIT_COST", "0.05")
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379")

        cfg = Settings()

        assert cfg.template_credit_cost == Decimal("0.05")
        assert cfg.has_redis is True
        assert cfg.is_development is True

    def test_relaxed_signatures_refused_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "PROD")
        monkeypatch.setenv("WEBHOOK_SIGNATURE_STRICT", "false")

        with pytest.raises(ValueError):
            Settings()

    def test_batch_limit_bounds(self, monkeypatch):
        monkeypatch.setenv("MEDIA_BATCH_LIMIT", "6")

        with pytest.raises(ValueError):
            Settings()

    def test_unknown_environment_falls_back_to_dev(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")

        assert Settings().environment == "DEV"


class TestErrors:
    def test_error_body(self):
        error = ValidationError("Missing message", field="message")

        assert error.to_dict() == {
            "error": "Missing message",
            "error_code": "VALIDATION_ERROR",
            "details": {"field": "message"},
        }

    @pytest.mark.parametrize(
        "error, status",
        [
            (InsufficientCredit("no credit"), 400),
            (TemplateUnavailable("none"), 404),
            (ProviderError("boom"), 500),
        ],
    )
    def test_status_mapping(self, error, status):
        assert map_error_to_status(error.error_code, default_status=error.status_code) == status

    def test_unmapped_code_uses_default(self):
        assert map_error_to_status("INVALID_WEBHOOK_PAYLOAD", default_status=400) == 400
        assert map_error_to_status(None, default_status=500) == 500


class TestContextLogger:
    def test_prefix_follows_request_context(self, caplog):
        logger = get_logger("wagate.tests")

        with caplog.at_level(logging.INFO, logger="wagate.tests"):
            set_request_context(tenant_id="tenant-1", user_id="+15551234567")
            logger.info("sending")
            clear_request_context()
            logger.info("idle")

        assert caplog.messages == ["[T:tenant-1][U:+15551234567] sending", "idle"]
