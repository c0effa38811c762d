"""Harness configuration.

Loads settings from environment variables (and an optional ``.env``) with
sensible defaults. ``MERCHANT`` and ``INTENT_API_BASE_URL`` keep their
historical names; every other knob is prefixed ``GATEWAY_QA_``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gateway_qa.domain.payloads import (
    DEFAULT_CANCEL_URL,
    DEFAULT_FAIL_URL,
    DEFAULT_SUCCESS_URL,
)


class Settings(BaseSettings):
    """Harness settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_QA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Merchant selection
    merchant: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MERCHANT", "GATEWAY_QA_MERCHANT"),
        description="Run only the merchant with this name (case-insensitive)",
    )
    merchants_file: Path = Field(default=Path("merchants.json"))

    # Gateway
    intent_api_base_url: str = Field(
        default="https://securenew.vernostpay.com/api",
        validation_alias=AliasChoices("INTENT_API_BASE_URL", "GATEWAY_QA_INTENT_API_BASE_URL"),
    )
    request_timeout: float = 15.0
    status_timeout: float = 20.0
    slow_timeout: float = 60.0

    # Transaction state
    state_dir: Path = Field(default=Path("."))

    # Redirect oracles
    success_url: str = DEFAULT_SUCCESS_URL
    fail_url: str = DEFAULT_FAIL_URL
    cancel_url: str = DEFAULT_CANCEL_URL

    # Scenario behaviour
    refund_settle_delay: float = 10.0
    strict_applicability: bool = True
    headless: bool = True

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
