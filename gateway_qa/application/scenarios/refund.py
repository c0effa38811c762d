"""Refund API scenarios.

Refunds consume transactions the intent run paid for. The transaction's
amount and refundability come from a status check first; a refused refund
on a transaction in the wrong state skips instead of failing, so reruns
over an already refunded transaction stay green.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from gateway_qa.application.expectations import (
    check,
    check_contains,
    check_equal,
    check_in,
    check_present,
    expect_auth_rejection,
    expect_shape,
    expect_success,
    skip_scenario,
)
from gateway_qa.application.refunds import (
    RefundBasis,
    eligibility_skip_reason,
    expected_full_refund_statuses,
    expected_partial_refund_statuses,
    half_of,
    is_razorpay,
    refund_rejection_skip_reason,
)
from gateway_qa.domain.exceptions import GatewayTransportError
from gateway_qa.domain.payloads import build_refund_payload, build_status_payload
from gateway_qa.domain.schemas import RefundResponse, is_valid_shape, validate_shape
from gateway_qa.infrastructure.config import Settings, get_settings
from gateway_qa.infrastructure.gateway_client import GatewayClient, GatewayResponse
from gateway_qa.infrastructure.merchant_registry import Merchant
from gateway_qa.infrastructure.state_store import ScenarioRecord, TransactionStateStore

logger = structlog.get_logger()

DEFAULT_CURRENCY = "INR"

# Full and partial refunds work on different transactions so one run can do both.
FULL_REFUND_SOURCE_TAGS: tuple[str, ...] = ("TC_012", "TC_013")
PARTIAL_REFUND_SOURCE_TAGS: tuple[str, ...] = ("TC_028", "TC_014")
PARTIAL_REFUND_LEGACY_KEYS: tuple[str, ...] = ("transaction_id4", "transaction_id2", "transactionId2")

REFUNDED_MESSAGE = "Transaction has been refunded"
PARTIALLY_REFUNDED_MESSAGE = "Transaction has been partially refunded"

# A refund body with every field of the wrong type.
MALFORMED_REFUND_BODY: dict[str, Any] = {
    "id": 12345,
    "status": "true",
    "status_code": 200,
    "acquirer_status_code": None,
    "txn_detail": {
        "txn_id": 987654,
        "refund_id": None,
        "txn_amount": "1000",
        "amount": "1000",
        "status": 1,
        "net_amount": "1000",
        "currency": 123,
        "gateway": True,
    },
    "raw_response": {
        "amount": "1000",
        "currency": 123,
        "entity": {},
        "id": 99999,
        "status": True,
    },
    "refund_createdAt": 123456,
    "message": {},
}


@dataclass
class RefundResult:
    """What a refund scenario did.

    Attributes:
        transaction_id: Refunded transaction.
        basis: Amounts and status looked up before refunding.
        refunded_minor: Amounts refunded by this run, in order.
        final_status: Last ``status_code`` the refund API reported.
    """

    transaction_id: str
    basis: RefundBasis
    refunded_minor: list[int]
    final_status: str | None = None


def refund_transaction_id(
    store: TransactionStateStore, merchant: Merchant, *, partial: bool = False
) -> str | None:
    """Get the recorded transaction a refund scenario works on."""
    if partial:
        return store.scenario_transaction_id(
            merchant.name, *PARTIAL_REFUND_SOURCE_TAGS, legacy_keys=PARTIAL_REFUND_LEGACY_KEYS
        )
    return store.scenario_transaction_id(merchant.name, *FULL_REFUND_SOURCE_TAGS)


def skip_unless_refunds_supported(merchant: Merchant) -> None:
    if not merchant.supports_refund:
        skip_scenario(f"{merchant.name} has no refund API", merchant=merchant.name)


async def lookup_refund_basis(
    client: GatewayClient, transaction_id: str, timeout: float | None = None
) -> RefundBasis:
    """Look up a transaction's amount and status before refunding.

    A failed lookup is not fatal: the default amount is used and the
    refund call decides.
    """
    try:
        response = await client.check_status(build_status_payload(transaction_id), timeout=timeout)
    except GatewayTransportError as e:
        logger.warning(
            "Status lookup failed, using default refund amount",
            transaction_id=transaction_id,
            error=e.message,
        )
        return RefundBasis.fallback()

    if not response.ok or not isinstance(response.data, dict):
        logger.warning(
            "Status lookup refused, using default refund amount",
            transaction_id=transaction_id,
            status_code=response.status_code,
        )
        return RefundBasis.fallback()

    basis = RefundBasis.from_status(response.data)
    logger.info(
        "Refund basis",
        transaction_id=transaction_id,
        status=basis.status,
        amount_minor=basis.amount_minor,
        refunded_minor=basis.refunded_minor,
        currency=basis.currency,
    )
    return basis


async def request_refund(
    client: GatewayClient, transaction_id: str, amount_minor: int, *, merchant: Merchant
) -> dict[str, Any]:
    """Refund an amount, skipping when the gateway says the state is wrong.

    Returns:
        The accepted refund body.
    """
    response = await client.refund(build_refund_payload(transaction_id, amount_minor))
    reason = refund_rejection_skip_reason(response)
    if reason is not None:
        skip_scenario(reason, merchant=merchant.name, transaction_id=transaction_id)
    return expect_success(response)


def _record_refund(
    store: TransactionStateStore,
    merchant: Merchant,
    scenario: str,
    transaction_id: str,
    refunds: list[dict[str, Any]],
) -> None:
    store.record_scenario(
        merchant.name,
        ScenarioRecord(
            scenario=scenario,
            transaction_id=transaction_id,
            merchant=merchant.name,
            extra={
                "refunds": [
                    {
                        "refund_id": body.get("txn_detail", {}).get("refund_id"),
                        "status_code": body.get("status_code"),
                        "amount": body.get("txn_detail", {}).get("amount"),
                    }
                    for body in refunds
                ]
            },
        ),
    )


# ============================================================================
# Body checks
# ============================================================================


def _check_raw_response(
    data: dict[str, Any], gateway: str | None, *, any_gateway: bool = False
) -> None:
    raw = data.get("raw_response") or {}
    detail = data.get("txn_detail") or {}
    check_present(raw, "raw_response")
    if not (any_gateway or is_razorpay(gateway)):
        check_present(raw.get("status"), "raw_response.status")
        return
    check_equal(raw.get("entity"), "refund", "raw_response.entity")
    expected_raw_status = "pending" if data.get("status_code") == "REFUND_PENDING" else "processed"
    check_equal(raw.get("status"), expected_raw_status, "raw_response.status")
    check_equal(raw.get("id"), detail.get("refund_id"), "raw_response.id")


def verify_full_refund_body(
    data: dict[str, Any],
    transaction_id: str,
    expected_currency: str = DEFAULT_CURRENCY,
) -> None:
    """Check an accepted full refund."""
    detail = data.get("txn_detail") or {}
    gateway = detail.get("gateway")
    allowed = expected_full_refund_statuses(gateway)
    pending = is_razorpay(gateway) and data.get("status_code") == "REFUND_PENDING"

    check_in(data.get("status_code"), allowed, "status_code")
    check_in(data.get("acquirer_status_code"), allowed, "acquirer_status_code")
    if pending:
        check_contains(str(data.get("message", "")).lower(), "processed", "message")
    else:
        check_equal(data.get("message"), REFUNDED_MESSAGE, "message")

    check_equal(detail.get("txn_id"), transaction_id, "txn_detail.txn_id")
    check_in(detail.get("status"), allowed, "txn_detail.status")
    for key in ("txn_amount", "amount", "net_amount", "refund_id"):
        check_present(detail.get(key), f"txn_detail.{key}")
    check_equal(detail.get("amount"), detail.get("txn_amount"), "txn_detail.amount")
    check_equal(detail.get("currency"), expected_currency, "txn_detail.currency")

    _check_raw_response(data, gateway, any_gateway=True)
    raw = data.get("raw_response") or {}
    check_equal(raw.get("amount"), detail.get("amount"), "raw_response.amount")
    check_equal(raw.get("currency"), expected_currency, "raw_response.currency")
    check_present(data.get("refund_createdAt"), "refund_createdAt")
    expect_shape(RefundResponse, data, "refund response")


def verify_partial_refund_body(
    data: dict[str, Any],
    transaction_id: str,
    basis: RefundBasis,
    refund_amount: int,
    expected_currency: str = DEFAULT_CURRENCY,
) -> None:
    """Check an accepted partial refund."""
    detail = data.get("txn_detail") or {}
    gateway = detail.get("gateway")
    status_code = data.get("status_code")
    pending = is_razorpay(gateway) and status_code == "REFUND_PENDING"

    check_in(status_code, expected_partial_refund_statuses(gateway), "status_code")
    check_in(
        data.get("acquirer_status_code"),
        {"REFUND_PENDING", "REFUNDED", "PARTIAL_REFUNDED"},
        "acquirer_status_code",
    )
    if pending:
        check_contains(str(data.get("message", "")).lower(), "processed", "message")
    else:
        check_equal(data.get("message"), PARTIALLY_REFUNDED_MESSAGE, "message")

    check_present(data.get("id"), "id")
    check_equal(detail.get("txn_id"), transaction_id, "txn_detail.txn_id")
    check_in(detail.get("status"), expected_partial_refund_statuses(gateway), "txn_detail.status")
    check_equal(detail.get("txn_amount"), basis.amount_minor, "txn_detail.txn_amount")
    check_equal(detail.get("amount"), refund_amount, "txn_detail.amount")
    check_equal(detail.get("net_amount"), basis.amount_minor, "txn_detail.net_amount")
    if not pending:
        # Razorpay sets remaining_amnt only once the refund settles.
        check_equal(
            detail.get("remaining_amnt"),
            basis.amount_minor - basis.refunded_minor - refund_amount,
            "txn_detail.remaining_amnt",
        )
    check_equal(detail.get("currency"), expected_currency, "txn_detail.currency")
    check_present(gateway, "txn_detail.gateway")

    _check_raw_response(data, gateway)
    if is_razorpay(gateway):
        check_equal((data.get("raw_response") or {}).get("amount"), refund_amount, "raw_response.amount")
    check_present(data.get("refund_createdAt"), "refund_createdAt")


# ============================================================================
# Scenarios
# ============================================================================


async def full_refund(
    client: GatewayClient,
    store: TransactionStateStore,
    merchant: Merchant,
    settings: Settings | None = None,
) -> RefundResult:
    """Refund a recorded transaction in full and check the result."""
    settings = settings or get_settings()
    skip_unless_refunds_supported(merchant)

    transaction_id = refund_transaction_id(store, merchant)
    if transaction_id is None:
        skip_scenario(
            f"No recorded transaction to refund for {merchant.name}", merchant=merchant.name
        )

    basis = await lookup_refund_basis(client, transaction_id, settings.status_timeout)
    reason = eligibility_skip_reason(basis)
    if reason is not None:
        skip_scenario(reason, merchant=merchant.name, transaction_id=transaction_id)

    amount = basis.amount_minor
    logger.info(
        "Requesting full refund",
        merchant=merchant.name,
        transaction_id=transaction_id,
        amount_minor=amount,
    )
    data = await request_refund(client, transaction_id, amount, merchant=merchant)
    verify_full_refund_body(data, transaction_id, basis.currency or DEFAULT_CURRENCY)

    _record_refund(store, merchant, "TC_030", transaction_id, [data])
    return RefundResult(transaction_id, basis, [amount], data.get("status_code"))


async def partial_then_full_refund(
    client: GatewayClient,
    store: TransactionStateStore,
    merchant: Merchant,
    settings: Settings | None = None,
) -> RefundResult:
    """Refund half of a transaction, then whatever remains.

    The remaining amount is recomputed from a status check after the
    partial refund, waiting first when the refund is still pending.
    """
    settings = settings or get_settings()
    skip_unless_refunds_supported(merchant)

    transaction_id = refund_transaction_id(store, merchant, partial=True)
    if transaction_id is None:
        skip_scenario(
            f"No recorded transaction for a partial refund for {merchant.name}",
            merchant=merchant.name,
        )

    basis = await lookup_refund_basis(client, transaction_id, settings.status_timeout)
    reason = eligibility_skip_reason(basis)
    if reason is not None:
        skip_scenario(reason, merchant=merchant.name, transaction_id=transaction_id)

    partial_amount = half_of(basis.amount_minor)
    logger.info(
        "Requesting partial refund",
        merchant=merchant.name,
        transaction_id=transaction_id,
        amount_minor=partial_amount,
    )
    first = await request_refund(client, transaction_id, partial_amount, merchant=merchant)
    currency = basis.currency or DEFAULT_CURRENCY
    verify_partial_refund_body(first, transaction_id, basis, partial_amount, currency)

    result = RefundResult(transaction_id, basis, [partial_amount], first.get("status_code"))
    bodies = [first]

    if first.get("status_code") == "REFUND_PENDING":
        logger.info("Refund pending, waiting", seconds=settings.refund_settle_delay)
        await asyncio.sleep(settings.refund_settle_delay)

    after = await lookup_refund_basis(client, transaction_id, settings.status_timeout)
    if after.known:
        remaining = after.remaining_minor
    else:
        remaining = basis.amount_minor - partial_amount

    if remaining <= 0:
        logger.info("Nothing left to refund", transaction_id=transaction_id)
    elif eligibility_skip_reason(after) is not None:
        logger.info(
            "Remaining refund not attempted",
            transaction_id=transaction_id,
            status=after.status,
        )
    else:
        response = await client.refund(build_refund_payload(transaction_id, remaining))
        if refund_rejection_skip_reason(response) is not None:
            logger.warning(
                "Remaining refund refused",
                transaction_id=transaction_id,
                status_code=response.status_code,
                message=response.get("message"),
            )
        else:
            second = expect_success(response)
            check_equal(
                (second.get("txn_detail") or {}).get("amount"),
                remaining,
                "txn_detail.amount of the remaining refund",
            )
            result.refunded_minor.append(remaining)
            result.final_status = second.get("status_code")
            bodies.append(second)

    _record_refund(store, merchant, "TC_031", transaction_id, bodies)
    return result


def verify_malformed_refund_rejected(body: dict[str, Any] | None = None) -> list[str]:
    """Check that a malformed refund body fails the shape.

    Returns:
        The violations found.
    """
    body = MALFORMED_REFUND_BODY if body is None else body
    check(
        not is_valid_shape(RefundResponse, body),
        "Malformed refund body passed shape validation",
        body=body,
    )
    return validate_shape(RefundResponse, body)


async def verify_refund_blank_credentials(
    client: GatewayClient, merchant: Merchant, transaction_id: str | None = None
) -> GatewayResponse:
    """Request a refund with empty ``mid``/``password`` and expect refusal."""
    response = await client.refund(
        build_refund_payload(transaction_id or "unrecorded-transaction", 500)
    )
    expect_auth_rejection(response, merchant.auth_failure_status)
    return response
