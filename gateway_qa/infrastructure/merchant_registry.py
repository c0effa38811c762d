"""Merchant credentials registry.

Loads the merchants the suite runs under from a static JSON file and
narrows them to one merchant when ``MERCHANT`` is set.
"""

import json
import re
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gateway_qa.domain.exceptions import MerchantConfigError, MerchantNotFoundError
from gateway_qa.infrastructure.config import Settings, get_settings

logger = structlog.get_logger()


# ============================================================================
# Merchant Configuration
# ============================================================================


class Merchant(BaseModel):
    """Credentials and display name of one merchant tenant.

    The JSON file uses ``merchant`` for the display name; ``name`` is
    accepted too.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(alias="merchant", min_length=1)
    mid: str
    password: str
    auth_failure_status: int = 401
    supports_refund: bool = True

    @property
    def slug(self) -> str:
        """Name with whitespace runs replaced by underscores."""
        return re.sub(r"\s+", "_", self.name.strip())

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.strip().lower() == name.strip().lower()

    def __str__(self) -> str:
        return self.name


def load_merchants(path: Path | str) -> list[Merchant]:
    """Load merchants from a JSON array file.

    Args:
        path: Path to ``merchants.json``.

    Returns:
        Merchants in file order.

    Raises:
        MerchantConfigError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise MerchantConfigError(
            str(path.resolve()),
            "file not found; place merchants.json in the project root (not inside tests/)",
        )

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MerchantConfigError(str(path), f"invalid JSON ({e})") from e

    if not isinstance(raw, list):
        raise MerchantConfigError(str(path), "expected a JSON array of merchants")

    try:
        return [Merchant.model_validate(item) for item in raw]
    except ValidationError as e:
        raise MerchantConfigError(str(path), f"invalid merchant entry ({e})") from e


def select_merchants(merchants: list[Merchant], selector: str | None) -> list[Merchant]:
    """Narrow merchants to the one named by selector.

    Args:
        merchants: All configured merchants.
        selector: Merchant name, or None/empty for all merchants.

    Returns:
        The matching merchants.

    Raises:
        MerchantNotFoundError: If selector is set and matches nothing.
    """
    if not selector:
        return list(merchants)

    selected = [m for m in merchants if m.matches(selector)]
    if not selected:
        raise MerchantNotFoundError(selector, [m.name for m in merchants])
    return selected


class MerchantRegistry:
    """Registry of configured merchants.

    Holds every merchant in the credentials file plus the subset selected
    for this run.
    """

    def __init__(self, merchants: list[Merchant], selector: str | None = None) -> None:
        """Initialize registry.

        Args:
            merchants: All configured merchants.
            selector: Optional merchant name to narrow the run to.
        """
        self._merchants = list(merchants)
        self._selected = select_merchants(self._merchants, selector)
        logger.info(
            "Merchants loaded",
            total=len(self._merchants),
            selected=[m.name for m in self._selected],
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MerchantRegistry":
        """Build the registry from the merchants file and ``MERCHANT``."""
        settings = settings or get_settings()
        return cls(load_merchants(settings.merchants_file), settings.merchant)

    def get_merchant(self, name: str) -> Merchant | None:
        """Get a merchant by name (case-insensitive)."""
        for merchant in self._merchants:
            if merchant.matches(name):
                return merchant
        return None

    def list_merchants(self) -> list[Merchant]:
        """List every configured merchant."""
        return list(self._merchants)

    def selected(self) -> list[Merchant]:
        """List the merchants selected for this run."""
        return list(self._selected)

    def names(self) -> list[str]:
        """Get the names of every configured merchant."""
        return [m.name for m in self._merchants]


# Global registry instance
_merchant_registry: MerchantRegistry | None = None


def get_merchant_registry() -> MerchantRegistry:
    """Get the merchant registry singleton."""
    global _merchant_registry
    if _merchant_registry is None:
        _merchant_registry = MerchantRegistry.from_settings()
    return _merchant_registry


def reset_merchant_registry() -> None:
    """Reset the registry singleton (for testing)."""
    global _merchant_registry
    _merchant_registry = None
