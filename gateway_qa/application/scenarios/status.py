"""Status check API scenarios."""

import re
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
    expect_rejection,
    expect_shape,
    expect_success,
    skip_scenario,
)
from gateway_qa.application.scenarios.intent import PAYMENT_SCENARIO_TAGS
from gateway_qa.domain.payloads import build_status_payload
from gateway_qa.domain.schemas import SettledStatusCheckResponse, is_valid_shape, validate_shape
from gateway_qa.domain.transaction_status import REPORTED_STATUSES, TransactionStatus
from gateway_qa.infrastructure.gateway_client import GatewayClient
from gateway_qa.infrastructure.merchant_registry import Merchant
from gateway_qa.infrastructure.state_store import ScenarioRecord, TransactionStateStore

logger = structlog.get_logger()

# What the status message must say for each reported status.
STATUS_MESSAGE_PATTERNS: dict[str, re.Pattern[str]] = {
    "CAPTURED": re.compile(r"captured|successful"),
    "FAIL": re.compile(r"fail"),
    "INPROGRESS": re.compile(r"progress"),
    "REFUNDED": re.compile(r"refund|captured"),
    "PARTIAL_REFUNDED": re.compile(r"refund|captured"),
}

# A status body with every field of the wrong type but plausible values.
MALFORMED_STATUS_BODY: dict[str, Any] = {
    "amount": 10,
    "currency": "INR",
    "transactionId": 12345,
    "orderId": "Pin204-873-6849",
    "refund_items": {},
    "customer_details": "invalid",
    "payment_details": {"type": 123},
    "status": "CAPTURED",
    "message": "Captured",
    "payment_method_type": "automatic",
    "integration_response": {"raw_response": []},
}


# ============================================================================
# Validation cases
# ============================================================================


@dataclass(frozen=True)
class StatusValidationCase:
    case_id: str
    title: str
    blank_field: str
    message: str


STATUS_VALIDATION_CASES: tuple[StatusValidationCase, ...] = (
    StatusValidationCase(
        "TC_025", "blank identifier", "identifier", "String must contain at least 1 character"
    ),
    StatusValidationCase(
        "TC_027", "blank verifySupplier", "verifySupplier", "Expected boolean, received string"
    ),
)

STATUS_VALIDATION_CASES_BY_ID = {case.case_id: case for case in STATUS_VALIDATION_CASES}


def recorded_transaction_id(store: TransactionStateStore, merchant: Merchant) -> str | None:
    """Get the transaction the intent run left for this merchant."""
    return store.scenario_transaction_id(merchant.name, *PAYMENT_SCENARIO_TAGS)


async def run_status_validation_case(
    client: GatewayClient,
    case: StatusValidationCase,
    transaction_id: str | None = None,
) -> None:
    """Blank one status field and check the gateway names it.

    Args:
        client: Gateway client.
        case: The case to run.
        transaction_id: Identifier to send when the case blanks another
            field; a placeholder is used if none is recorded.
    """
    payload = build_status_payload(transaction_id or "unrecorded-transaction")
    payload[case.blank_field] = ""

    response = await client.check_status(payload)
    envelope = expect_rejection(response, status=400)
    check_equal(envelope.status, False, "status")
    check_equal(envelope.message, "Invalid request", "message")
    check_contains(envelope.error_message(0), case.message, "errors[0].message")
    check_equal(envelope.error_path(0), case.blank_field, "errors[0].path[0]")
    logger.info("Status validation case passed", case=case.case_id, title=case.title)


# ============================================================================
# Positive cases
# ============================================================================


def check_status_body(data: dict[str, Any]) -> None:
    """Check a status body for internal consistency.

    The status must be one the gateway reports for payments, and the
    message must agree with it.
    """
    for key in ("transactionId", "orderId", "customer_details", "payment_details"):
        check_present(data.get(key), key)

    status = TransactionStatus.parse(data.get("status"))
    check_in(
        status.value if status else data.get("status"),
        {s.value for s in REPORTED_STATUSES},
        "status",
    )

    message = str(data.get("message") or "").lower()
    pattern = STATUS_MESSAGE_PATTERNS[status.value]
    check(
        bool(pattern.search(message)),
        f"Message {data.get('message')!r} does not match status {status.value} "
        f"(expected /{pattern.pattern}/)",
    )

    integration = data.get("integration_response")
    check(isinstance(integration, dict), "integration_response is missing")
    check_present(integration.get("raw_response"), "integration_response.raw_response")


async def check_transaction_status(
    client: GatewayClient, transaction_id: str, timeout: float | None = None
) -> dict[str, Any]:
    """Check one transaction and its body's consistency.

    Returns:
        The status body.
    """
    response = await client.check_status(build_status_payload(transaction_id), timeout=timeout)
    data = expect_success(response, status_flag=False)
    check_status_body(data)
    logger.info(
        "Transaction status checked",
        transaction_id=transaction_id,
        status=data.get("status"),
        amount=data.get("amount"),
        currency=data.get("currency"),
    )
    return data


def transactions_to_check(store: TransactionStateStore, merchant: Merchant) -> list[ScenarioRecord]:
    """List the recorded payment transactions of a merchant.

    Only checkout payments count; refund records are left out. Scenario
    records come first; a record written by an older run contributes its
    legacy primary id.
    """
    records = [
        record
        for record in store.scenarios(merchant.name)
        if record.scenario.upper() in PAYMENT_SCENARIO_TAGS
    ]
    if records:
        return records
    legacy = store.scenario_transaction_id(merchant.name)
    if legacy is None:
        return []
    return [ScenarioRecord(scenario="legacy", transaction_id=legacy, merchant=merchant.name)]


async def check_recorded_statuses(
    client: GatewayClient,
    store: TransactionStateStore,
    merchant: Merchant,
    timeout: float | None = None,
) -> list[dict[str, Any]]:
    """Check every transaction recorded for a merchant.

    Skips when nothing was recorded.

    Returns:
        The status bodies, in record order.
    """
    records = transactions_to_check(store, merchant)
    if not records:
        skip_scenario(
            f"No recorded transaction for {merchant.name}; run the intent suite first",
            merchant=merchant.name,
        )

    results = []
    for record in records:
        logger.info(
            "Checking recorded transaction",
            merchant=merchant.name,
            scenario=record.scenario,
            transaction_id=record.transaction_id,
        )
        results.append(await check_transaction_status(client, record.transaction_id, timeout))
    return results


async def verify_status_shape(
    client: GatewayClient,
    store: TransactionStateStore,
    merchant: Merchant,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Check the status body of the recorded transaction against the settled shape."""
    transaction_id = recorded_transaction_id(store, merchant)
    if transaction_id is None:
        skip_scenario(
            f"No recorded transaction for {merchant.name}; run the intent suite first",
            merchant=merchant.name,
        )

    response = await client.check_status(build_status_payload(transaction_id), timeout=timeout)
    data = expect_success(response, status_flag=False)
    expect_shape(SettledStatusCheckResponse, data, "status check response")
    return data


def verify_malformed_status_rejected(body: dict[str, Any] | None = None) -> list[str]:
    """Check that a malformed status body fails the shape.

    Returns:
        The violations found.
    """
    body = MALFORMED_STATUS_BODY if body is None else body
    check(
        not is_valid_shape(SettledStatusCheckResponse, body),
        "Malformed status body passed shape validation",
        body=body,
    )
    return validate_shape(SettledStatusCheckResponse, body)


async def verify_status_blank_credentials(
    client: GatewayClient, merchant: Merchant, transaction_id: str | None = None
) -> None:
    """Check a status with empty ``mid``/``password`` and expect refusal."""
    response = await client.check_status(
        build_status_payload(transaction_id or "unrecorded-transaction")
    )
    expect_auth_rejection(response, merchant.auth_failure_status)
