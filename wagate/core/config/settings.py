"""
Settings for the wagate messaging gateway.

Environment variable configuration for the provider connection, webhook
security, persistence backends and media storage.
"""

import os
import tomllib
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

# Load .env file for local development - look in current working directory
load_dotenv(".env")


def _get_version_from_pyproject() -> str:
    """
    Read version from pyproject.toml file.

    Returns:
        Version string from pyproject.toml, or fallback version
    """
    current_path = Path(__file__)
    for parent in [current_path.parent, *current_path.parents]:
        pyproject_path = parent / "pyproject.toml"
        if pyproject_path.exists():
            try:
                with open(pyproject_path, "rb") as f:
                    pyproject_data = tomllib.load(f)
                    version = pyproject_data.get("project", {}).get("version")
                    if version:
                        return version
            except (OSError, tomllib.TOMLDecodeError):
                continue

    return "0.1.0"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings with environment-based configuration."""

    def __init__(self):
        # ================================================================
        # Version & Environment
        # ================================================================
        self.version: str = _get_version_from_pyproject()
        self.environment: str = os.getenv("ENVIRONMENT", "DEV")
        self.port: int = int(os.getenv("PORT", "8000"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.log_dir: str = os.getenv("LOG_DIR", "./logs")

        # ================================================================
        # WhatsApp Cloud API
        # ================================================================
        self.api_version: str = os.getenv("API_VERSION", "v23.0")
        self.base_url: str = os.getenv("BASE_URL", "https://graph.facebook.com/")
        self.provider_timeout_seconds: float = float(
            os.getenv("PROVIDER_TIMEOUT_SECONDS", "30")
        )

        # ================================================================
        # Webhook Security
        # ================================================================
        self.whatsapp_verify_token: str | None = os.getenv("WHATSAPP_VERIFY_TOKEN")
        self.whatsapp_app_secret: str | None = os.getenv("WHATSAPP_APP_SECRET")
        # Only DEV may relax this
        self.webhook_signature_strict: bool = _env_bool(
            "WEBHOOK_SIGNATURE_STRICT", True
        )

        # ================================================================
        # Persistence
        # ================================================================
        self.database_url: str = os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./wagate.db"
        )
        self.redis_url: str | None = os.getenv("REDIS_URL")
        self.redis_max_connections: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "64"))
        self.dedup_ttl_seconds: int = int(os.getenv("DEDUP_TTL_SECONDS", "86400"))

        # ================================================================
        # Media Storage
        # ================================================================
        self.media_storage_dir: str = os.getenv("MEDIA_STORAGE_DIR", "./media")
        self.media_public_base_url: str = os.getenv(
            "MEDIA_PUBLIC_BASE_URL", "http://localhost:8000/media"
        )
        self.media_timeout_seconds: float = float(
            os.getenv("MEDIA_TIMEOUT_SECONDS", "30")
        )
        self.media_batch_limit: int = int(os.getenv("MEDIA_BATCH_LIMIT", "5"))

        # ================================================================
        # Billing & Notifications
        # ================================================================
        self.template_credit_cost: Decimal = self._parse_decimal(
            os.getenv("TEMPLATE_CREDIT_COST", "0.01")
        )
        self.notification_timeout_seconds: float = float(
            os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10")
        )
        self.notification_signing_secret: str | None = os.getenv(
            "NOTIFICATION_SIGNING_SECRET"
        )

        self._validate_settings()

    @staticmethod
    def _parse_decimal(raw: str) -> Decimal:
        try:
            return Decimal(raw)
        except InvalidOperation as e:
            raise ValueError(f"TEMPLATE_CREDIT_COST must be a decimal, got {raw!r}") from e

    def _validate_settings(self):
        """Validate settings values."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        self.log_level = self.log_level.upper()

        valid_environments = ["DEV", "PROD"]
        if self.environment.upper() not in valid_environments:
            self.environment = "DEV"
        self.environment = self.environment.upper()

        if self.is_production and not self.webhook_signature_strict:
            raise ValueError(
                "WEBHOOK_SIGNATURE_STRICT=false is only allowed when ENVIRONMENT=DEV"
            )

        if self.template_credit_cost <= 0:
            raise ValueError("TEMPLATE_CREDIT_COST must be positive")

        if not 1 <= self.media_batch_limit <= 5:
            raise ValueError("MEDIA_BATCH_LIMIT must be between 1 and 5")

    @property
    def has_redis(self) -> bool:
        """Check if Redis is configured."""
        return self.redis_url is not None

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "DEV"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "PROD"


# Global settings instance
settings = Settings()
