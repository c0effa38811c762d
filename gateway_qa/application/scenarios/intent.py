"""Intent API scenarios.

Negative cases blank or corrupt one field of an otherwise valid intent and
check the gateway's error. Positive checkout cases create an intent, hand
its transaction to later runs through the state store, and pay on the
hosted page.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from gateway_qa.application.checkout import (
    CARD_FLOW,
    NETBANKING_FLOW,
    UPI_FLOW,
    CheckoutFlow,
    CheckoutOutcome,
    run_checkout,
)
from gateway_qa.application.expectations import (
    check,
    check_contains,
    check_equal,
    check_present,
    expect_auth_rejection,
    expect_rejection,
    expect_shape,
    expect_success,
)
from gateway_qa.domain.payloads import build_intent_payload
from gateway_qa.domain.schemas import ErrorEnvelope, IntentResponse
from gateway_qa.infrastructure.config import Settings, get_settings
from gateway_qa.infrastructure.gateway_client import GatewayClient
from gateway_qa.infrastructure.merchant_registry import Merchant
from gateway_qa.infrastructure.state_store import ScenarioRecord, TransactionStateStore

logger = structlog.get_logger()


# ============================================================================
# Validation cases
# ============================================================================


@dataclass(frozen=True)
class IntentValidationCase:
    """A negative intent case.

    Attributes:
        case_id: Scenario tag.
        title: What the case sends.
        overrides: Payload fields to set on the valid base payload.
        status_code: Exact HTTP status expected, if the case pins one.
        messages: Fragments expected in ``errors[i].message``, by index.
        error_path: Expected first path segment of the first error.
        error_type: Expected type of the first error.
        envelope_message: Fragment expected in the top-level message.
    """

    case_id: str
    title: str
    overrides: dict[str, Any]
    status_code: int | None = None
    messages: tuple[str, ...] = ()
    error_path: str | None = None
    error_type: str | None = None
    envelope_message: str | None = None


INTENT_VALIDATION_CASES: tuple[IntentValidationCase, ...] = (
    IntentValidationCase(
        "TC_001", "blank currency code", {"curr_code": ""}, status_code=400
    ),
    IntentValidationCase(
        "TC_002",
        "blank amount",
        {"amount": ""},
        messages=("Amount should be in integer",),
    ),
    IntentValidationCase(
        "TC_003",
        "blank merchant order token",
        {"merchant_order_token": ""},
        messages=("String must contain at least 1 character",),
    ),
    IntentValidationCase(
        "TC_004",
        "blank customer email",
        {"customer_email": ""},
        messages=("Email is required",),
    ),
    IntentValidationCase(
        "TC_005",
        "invalid customer email format",
        {"customer_email": "qa.automation@.com"},
        messages=("Invalid email format",),
    ),
    IntentValidationCase(
        "TC_006",
        "blank customer mobile",
        {"customer_mobile": ""},
        messages=("Invalid mobile number format", "Mobile number must have at least 5 digits"),
    ),
    IntentValidationCase(
        "TC_007",
        "blank customer first name",
        {"customer_first_name": ""},
        status_code=400,
        messages=("String must contain at least 1 character",),
        error_path="customer_first_name",
        error_type="too_small",
        envelope_message="Invalid request",
    ),
    IntentValidationCase(
        "TC_008",
        "blank customer last name",
        {"customer_last_name": ""},
        status_code=400,
        messages=("String must contain at least 1 character",),
        error_path="customer_last_name",
        error_type="too_small",
        envelope_message="Invalid request",
    ),
)

INTENT_VALIDATION_CASES_BY_ID = {case.case_id: case for case in INTENT_VALIDATION_CASES}


async def run_intent_validation_case(
    client: GatewayClient, case: IntentValidationCase
) -> None:
    """Send a corrupted intent and check the gateway refuses it as described."""
    response = await client.create_intent(build_intent_payload(case.overrides))
    envelope = expect_rejection(response, status=case.status_code)

    if case.envelope_message is not None:
        check_equal(envelope.status, False, "status")
        check_contains(envelope.message, case.envelope_message, "message")
    for index, fragment in enumerate(case.messages):
        check_contains(envelope.error_message(index), fragment, f"errors[{index}].message")
    if case.error_path is not None:
        check_equal(envelope.error_path(0), case.error_path, "errors[0].path[0]")
    if case.error_type is not None:
        check_equal(envelope.error_type(0), case.error_type, "errors[0].type")

    logger.info("Intent validation case passed", case=case.case_id, title=case.title)


# ============================================================================
# API cases
# ============================================================================


def _check_intent_basics(data: dict[str, Any]) -> None:
    check_present(data.get("transaction_id"), "transaction_id")
    check_contains(data.get("ref_link"), "https://", "ref_link")


async def create_valid_intent(
    client: GatewayClient, overrides: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Create a valid intent.

    Returns:
        The success body.
    """
    response = await client.create_intent(build_intent_payload(overrides))
    data = expect_success(response)
    _check_intent_basics(data)
    return data


async def verify_intent_response_shape(client: GatewayClient) -> dict[str, Any]:
    """Create an intent and check the success body's shape."""
    response = await client.create_intent(build_intent_payload({"amount": 1000}))
    data = expect_success(response)
    expect_shape(IntentResponse, data, "intent response")
    _check_intent_basics(data)
    return data


async def verify_intent_error_shape(client: GatewayClient) -> None:
    """Send a non-integer amount and check the error body's shape."""
    response = await client.create_intent(build_intent_payload({"amount": "invalid_amount"}))
    envelope = expect_rejection(response)
    expect_shape(ErrorEnvelope, response.data, "intent error response")
    check_equal(envelope.status, False, "status")
    check_present(envelope.error_message(0), "errors[0].message")


async def verify_intent_blank_credentials(client: GatewayClient, merchant: Merchant) -> None:
    """Create an intent with empty ``mid``/``password`` and expect refusal.

    Args:
        client: Client built with blank credentials.
        merchant: Merchant whose ``auth_failure_status`` is expected.
    """
    response = await client.create_intent(build_intent_payload({"amount": 1000}))
    expect_auth_rejection(response, merchant.auth_failure_status)


# ============================================================================
# Checkout cases
# ============================================================================


@dataclass(frozen=True)
class CheckoutCase:
    """A pay-on-hosted-page case.

    Attributes:
        case_id: Scenario tag, also the key of the recorded transaction.
        title: Payment method under test.
        flow: Checkout flow to drive.
        overrides: Intent payload overrides (the amount, usually).
        legacy_keys: Flat transaction id and link keys older runs read.
    """

    case_id: str
    title: str
    flow: CheckoutFlow
    overrides: dict[str, Any] = field(default_factory=dict)
    legacy_keys: tuple[str, str] = ("transactionId", "refLink")


CHECKOUT_CASES: tuple[CheckoutCase, ...] = (
    CheckoutCase("TC_012", "card", CARD_FLOW, {"amount": 10000}),
    CheckoutCase("TC_013", "netbanking", NETBANKING_FLOW, {"amount": 1000}),
    CheckoutCase(
        "TC_014", "upi", UPI_FLOW, {"amount": 1000}, ("transaction_id2", "refLink2")
    ),
    CheckoutCase(
        "TC_028",
        "card (partial refund)",
        CARD_FLOW,
        {"amount": 10000},
        ("transaction_id4", "refLink4"),
    ),
)

CHECKOUT_CASES_BY_ID = {case.case_id: case for case in CHECKOUT_CASES}

# Scenario tags whose transactions later families consume, most preferred first.
PAYMENT_SCENARIO_TAGS: tuple[str, ...] = tuple(case.case_id for case in CHECKOUT_CASES)


def record_intent(
    store: TransactionStateStore,
    merchant: Merchant,
    case_id: str,
    data: dict[str, Any],
) -> ScenarioRecord:
    """Record a created intent for the status and refund runs.

    Also writes the case's flat legacy keys (``transactionId``/``refLink``
    for the card and netbanking cases) so older runs still find it.
    """
    record = ScenarioRecord(
        scenario=case_id,
        transaction_id=str(data["transaction_id"]),
        redirect_url=data.get("ref_link"),
        merchant=merchant.name,
    )
    store.record_scenario(merchant.name, record)
    case = CHECKOUT_CASES_BY_ID.get(case_id.upper())
    id_key, link_key = case.legacy_keys if case else ("transactionId", "refLink")
    store.merge(merchant.name, {id_key: record.transaction_id, link_key: record.redirect_url})
    return record


async def pay_with_checkout(
    client: GatewayClient,
    store: TransactionStateStore,
    merchant: Merchant,
    page: Any,
    case: CheckoutCase,
    settings: Settings | None = None,
) -> CheckoutOutcome:
    """Create an intent, record it, and pay on the hosted page.

    Raises:
        ExpectationFailed: If the intent is refused or the browser never
            reaches the success URL.
    """
    settings = settings or get_settings()
    payload = build_intent_payload(
        case.overrides,
        success_url=settings.success_url,
        fail_url=settings.fail_url,
        cancel_url=settings.cancel_url,
    )
    response = await client.create_intent(payload, timeout=settings.slow_timeout)
    data = expect_success(response)
    _check_intent_basics(data)
    record = record_intent(store, merchant, case.case_id, data)

    outcome = await run_checkout(page, case.flow, data["ref_link"], settings.success_url)
    check(
        outcome.reached_success,
        f"{case.case_id} {case.title} payment did not reach {settings.success_url}: "
        f"stopped at {outcome.final_url or 'unknown URL'} "
        f"(step: {outcome.failed_step or 'success redirect'}, error: {outcome.error})",
        transaction_id=record.transaction_id,
        failed_step=outcome.failed_step,
    )
    logger.info(
        "Checkout payment completed",
        merchant=merchant.name,
        case=case.case_id,
        transaction_id=record.transaction_id,
    )
    return outcome
