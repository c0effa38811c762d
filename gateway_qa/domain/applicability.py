"""Per-merchant applicability of test cases.

Not every merchant is configured with every payment method, so each
scenario family keeps an allow-list: case id -> merchant names the case
is meaningful for. A case with no entry (or an empty entry) applies to
every merchant. Name matching is case-insensitive.
"""

from collections.abc import Iterable, Mapping
from enum import Enum

from gateway_qa.domain.exceptions import UnknownMerchantError


class ScenarioFamily(str, Enum):
    """The three scenario families of the suite."""

    INTENT = "intent"
    STATUS = "status"
    REFUND = "refund"


def _normalize(name: str) -> str:
    return name.strip().lower()


class ApplicabilityMap:
    """Static allow-list of merchants per test case."""

    def __init__(self, entries: Mapping[str, Iterable[str]]) -> None:
        """Initialize the map.

        Args:
            entries: Case id to merchant display names.
        """
        self._entries: dict[str, tuple[str, ...]] = {
            case_id.upper(): tuple(names) for case_id, names in entries.items()
        }
        self._lookup: dict[str, frozenset[str]] = {
            case_id: frozenset(_normalize(n) for n in names)
            for case_id, names in self._entries.items()
        }

    def __contains__(self, case_id: str) -> bool:
        return case_id.upper() in self._entries

    def is_applicable(self, case_id: str, merchant_name: str) -> bool:
        """Check whether a case applies to a merchant.

        Args:
            case_id: Test case identifier, e.g. ``"TC_012"``.
            merchant_name: Merchant display name.

        Returns:
            True when the case has no entry, or the merchant is listed.
        """
        allowed = self._lookup.get(case_id.upper())
        if not allowed:
            return True
        return _normalize(merchant_name) in allowed

    def skip_reason(self, case_id: str, merchant_name: str) -> str | None:
        """Get a skip message when the case does not apply, else None."""
        if self.is_applicable(case_id, merchant_name):
            return None
        return f"{case_id} does not apply to merchant {merchant_name}"

    def validate(self, known_names: Iterable[str]) -> None:
        """Fail fast on merchant names the registry does not know.

        Args:
            known_names: Every merchant name in the registry.

        Raises:
            UnknownMerchantError: If any entry names an unknown merchant.
        """
        known = sorted(known_names)
        known_lookup = {_normalize(n) for n in known}
        unknown = [
            (case_id, name)
            for case_id, names in self._entries.items()
            for name in names
            if _normalize(name) not in known_lookup
        ]
        if unknown:
            raise UnknownMerchantError(unknown, known)


# ============================================================================
# Static Tables
# ============================================================================

KNOWN_MERCHANTS: tuple[str, ...] = (
    "SBIC",
    "Axis Open store",
    "Google",
    "Axis Traveledge",
    "Axis Traveledge new",
    "IIFA",
    "Elevate trips",
    "Loylogic",
    "GEMS",
    "Booking Bash",
    "Curacao",
    "Zenith",
    "Zenith Gyftr",
    "Dadabhai Travel",
)

# Merchants routed to the hosted Razorpay-style checkout page.
_HOSTED_CARD = ("SBIC", "Axis Open store", "Google", "IIFA", "Zenith", "Zenith Gyftr")

# Merchants whose status responses follow the common gateway envelope.
_COMMON_STATUS = (
    "SBIC",
    "Axis Open store",
    "Google",
    "Axis Traveledge",
    "Axis Traveledge new",
    "IIFA",
    "Zenith",
    "Zenith Gyftr",
)

INTENT_APPLICABILITY = ApplicabilityMap(
    {
        "TC_012": _HOSTED_CARD,
        "TC_013": ("SBIC", "Google"),
        "TC_014": ("SBIC", "Google"),
        # Card payment set aside for the partial refund; not run for Zenith.
        "TC_028": tuple(n for n in _HOSTED_CARD if n not in ("Zenith", "Zenith Gyftr")),
    }
)

STATUS_APPLICABILITY = ApplicabilityMap(
    {
        "TC_026": _COMMON_STATUS,
        "TC_027": tuple(n for n in KNOWN_MERCHANTS if n != "Dadabhai Travel"),
        "TC_028": _COMMON_STATUS,
        "TC_045": tuple(
            n for n in KNOWN_MERCHANTS if n not in ("Dadabhai Travel", "Elevate trips")
        ),
    }
)

REFUND_APPLICABILITY = ApplicabilityMap(
    {
        # Merchants with a recorded checkout payment to refund.
        "TC_030": ("SBIC", "Axis Open store", "Google", "IIFA"),
        "TC_031": ("SBIC", "Axis Open store", "Google", "IIFA"),
        "TC_032": tuple(n for n in KNOWN_MERCHANTS if n not in ("Loylogic", "Curacao")),
    }
)

APPLICABILITY: dict[ScenarioFamily, ApplicabilityMap] = {
    ScenarioFamily.INTENT: INTENT_APPLICABILITY,
    ScenarioFamily.STATUS: STATUS_APPLICABILITY,
    ScenarioFamily.REFUND: REFUND_APPLICABILITY,
}


def get_applicability(family: ScenarioFamily | str) -> ApplicabilityMap:
    """Get the static map for a scenario family."""
    return APPLICABILITY[ScenarioFamily(family)]


def validate_applicability(registry_names: Iterable[str] = ()) -> None:
    """Check every family's table against the known merchant roster.

    Names from the registry are accepted too, so a credentials file that
    holds only some merchants still passes.

    Raises:
        UnknownMerchantError: If a table names a merchant in neither list.
    """
    known = {*KNOWN_MERCHANTS, *registry_names}
    for table in APPLICABILITY.values():
        table.validate(known)
