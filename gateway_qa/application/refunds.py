"""Refund planning.

The status check reports amounts in major units (rupees, dirhams) while
the refund API takes minor units, so every amount passes through
``to_minor_units``. Rejections of a refund are sorted into "the
transaction is in the wrong state" (skip) and "the request itself is
wrong" (fail).
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from gateway_qa.application.expectations import parse_error_envelope
from gateway_qa.domain.transaction_status import TransactionStatus, is_refundable
from gateway_qa.infrastructure.gateway_client import GatewayResponse

DEFAULT_REFUND_AMOUNT = 1000

SKIPPABLE_REFUND_STATUS_CODES = frozenset({400, 500})


def to_minor_units(amount: Any) -> int:
    """Convert a major-unit amount (number or numeric string) to minor units.

    Raises:
        ValueError: If amount is not numeric.
    """
    if isinstance(amount, bool) or amount is None:
        raise ValueError(f"Not an amount: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"Not an amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Not an amount: {amount!r}")
    return int(value * 100)


def refunded_minor_units(refund_items: list[Any] | None) -> int:
    """Sum the refunds already applied.

    Unlike the transaction amount, refund items are reported in minor
    units already; fractional parts are dropped.

    Raises:
        ValueError: If an item amount is not numeric.
    """
    total = 0
    for item in refund_items or []:
        if isinstance(item, dict) and item.get("amount") not in (None, ""):
            total += to_minor_units(item["amount"]) // 100
    return total


def half_of(amount_minor: int) -> int:
    """Partial refund amount: half, rounded down."""
    return amount_minor // 2


def is_razorpay(gateway: str | None) -> bool:
    """Razorpay settles refunds asynchronously (REFUND_PENDING first)."""
    return "razorpay" in (gateway or "").lower()


@dataclass
class RefundBasis:
    """What the status check says about a transaction before a refund.

    Attributes:
        amount_minor: Transaction amount in minor units.
        refunded_minor: Sum of refunds already applied.
        currency: Currency code, if reported.
        status: Reported status, or None if the lookup failed.
    """

    amount_minor: int
    refunded_minor: int = 0
    currency: str | None = None
    status: str | None = None

    @property
    def known(self) -> bool:
        return self.status is not None

    @property
    def remaining_minor(self) -> int:
        return max(0, self.amount_minor - self.refunded_minor)

    @classmethod
    def fallback(cls) -> "RefundBasis":
        return cls(amount_minor=DEFAULT_REFUND_AMOUNT)

    @classmethod
    def from_status(cls, data: dict[str, Any]) -> "RefundBasis":
        """Build from a status check body."""
        try:
            amount_minor = to_minor_units(data.get("amount"))
        except ValueError:
            amount_minor = DEFAULT_REFUND_AMOUNT
        try:
            refunded = refunded_minor_units(data.get("refund_items"))
        except ValueError:
            refunded = 0
        return cls(
            amount_minor=amount_minor,
            refunded_minor=refunded,
            currency=data.get("currency") or None,
            status=data.get("status") or None,
        )


def eligibility_skip_reason(basis: RefundBasis) -> str | None:
    """Get a skip message when the transaction cannot take a refund.

    An unknown status (lookup failed) does not skip; the refund call itself
    then decides.
    """
    if not basis.known or is_refundable(basis.status):
        return None
    allowed = ", ".join(
        s.value for s in TransactionStatus if s.is_refundable()
    )
    return f"Transaction status {basis.status} is not refundable (refundable: {allowed})"


def refund_rejection_skip_reason(response: GatewayResponse) -> str | None:
    """Decide whether a refused refund means "wrong state" rather than a bug.

    A 400 or 500 without field-level errors is read as the transaction
    being already refunded or not yet capturable, so the scenario skips.
    A 400 that names request fields is a genuine validation failure and
    returns None, as does any other status.
    """
    if response.ok or response.status_code not in SKIPPABLE_REFUND_STATUS_CODES:
        return None
    envelope = parse_error_envelope(response)
    if response.status_code == 400 and envelope.has_field_errors:
        return None
    message = envelope.message or "no message"
    return (
        f"Refund API returned {response.status_code} ({message}); "
        "transaction already refunded or in a non-refundable state"
    )


def expected_full_refund_statuses(gateway: str | None) -> frozenset[str]:
    """Statuses a successful full refund may report."""
    if is_razorpay(gateway):
        return frozenset({"REFUND_PENDING", "REFUNDED"})
    return frozenset({"REFUNDED"})


def expected_partial_refund_statuses(gateway: str | None) -> frozenset[str]:
    """Statuses a successful partial refund may report."""
    if is_razorpay(gateway):
        return frozenset({"REFUND_PENDING", "PARTIAL_REFUNDED"})
    return frozenset({"PARTIAL_REFUNDED"})
