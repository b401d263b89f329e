"""
Validator Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Invalid config is rejected when settings load.
"""

import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Validator settings loaded from environment variables."""

    # Google Play - service account key as base64-encoded JSON
    google_play_service_account_key: str = ""
    # Reuse credentials across verify_receipt() calls instead of rebuilding per call
    google_play_reuse_credentials: bool = False

    # Zone used to render purchase dates
    time_zone: str = "UTC"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Service identity (attached to logs, metrics, traces)
    service_name: str = "playstore-validator"
    service_version: str = "0.1.0"

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate configuration when settings load.

        A misspelled zone or log format would otherwise only surface on the
        first verification.
        """
        errors: list[str] = []

        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"TIME_ZONE is not a known IANA zone: {self.time_zone!r}")

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format!r}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CONFIGURATION ERROR - RECEIPT VALIDATOR CANNOT START",
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
    def zone(self) -> ZoneInfo:
        """Get the configured time zone."""
        return ZoneInfo(self.time_zone)


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get validator settings instance."""
    return settings
