"""
Validator Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated when the settings are built.
"""

import sys
from enum import Enum
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class InventoryRequestType(str, Enum):
    """Policy for fetching the user inventory from the validation service."""

    DISABLED = "disabled"
    ONCE = "once"
    DELAY = "delay"


class Settings(BaseSettings):
    """Validator settings loaded from keyword arguments or environment variables."""

    # Application identity - NO DEFAULT for app_id
    app_id: str = ""  # 16-character application ID from the IAPGUARD dashboard
    bundle_id: str = ""  # e.g., "com.example.game"
    user_id: str = ""  # Set from the host's authentication system

    # Validation service endpoints
    validation_endpoint: str = "https://api.iapguard.com/v1/receipt"
    inventory_endpoint: str = "https://api.iapguard.com/v1/user"
    validation_method: str = "POST"  # POST or PUT
    http_timeout_seconds: float = 30.0
    rate_limited_error_code: int = 10130

    # User inventory (not available on the free plan)
    inventory_request_type: InventoryRequestType = InventoryRequestType.DISABLED
    inventory_delay_seconds: int = 1800
    purchase_history_window_seconds: int = 2628000  # 1 month
    history_marker_key: str = "purchase_guard_inventory_timestamp"
    state_file: str = ""  # Empty keeps persisted state in memory only

    # Restore throttling
    restore_delay_min_seconds: float = 2.0
    restore_delay_max_seconds: float = 5.0

    # Local validation - base64 DER public key from the Play Console
    google_play_public_key: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "purchase-guard"
    version: str = "0.1.0"

    # Observability - Metrics
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="PURCHASE_GUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration.

        The validator MUST NOT start if critical config is missing.
        This prevents silent failures that only manifest after a purchase.
        """
        errors: list[str] = []

        if not self.app_id:
            errors.append("APP_ID is required but empty or missing")

        for name in ("validation_endpoint", "inventory_endpoint"):
            value = getattr(self, name)
            if not value.startswith(("http://", "https://")):
                errors.append(f"{name.upper()} must be an http(s) URL, got: {value[:20]}...")

        if self.validation_method.upper() not in ("POST", "PUT"):
            errors.append(f"VALIDATION_METHOD must be POST or PUT, got: {self.validation_method}")

        if self.restore_delay_min_seconds < 0:
            errors.append("RESTORE_DELAY_MIN_SECONDS cannot be negative")
        if self.restore_delay_min_seconds > self.restore_delay_max_seconds:
            errors.append("RESTORE_DELAY_MIN_SECONDS must not exceed RESTORE_DELAY_MAX_SECONDS")

        if self.inventory_delay_seconds < 0:
            errors.append("INVENTORY_DELAY_SECONDS cannot be negative")
        if self.purchase_history_window_seconds < 0:
            errors.append("PURCHASE_HISTORY_WINDOW_SECONDS cannot be negative")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - VALIDATOR CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def receipt_url(self) -> str:
        """Get the receipt validation URL for this application."""
        return f"{self.validation_endpoint.rstrip('/')}/{self.app_id}"

    def inventory_url(self, user_id: str) -> str:
        """Get the inventory URL for a user of this application."""
        return f"{self.inventory_endpoint.rstrip('/')}/{self.app_id}/{user_id}"


@lru_cache
def get_settings() -> Settings:
    """Get environment-driven settings instance (built on first call)."""
    return Settings()
