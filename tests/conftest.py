"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gateway_qa.infrastructure.config import Settings
from gateway_qa.infrastructure.gateway_client import GatewayClient, GatewayResponse
from gateway_qa.infrastructure.merchant_registry import Merchant
from gateway_qa.infrastructure.state_store import InMemoryStateBackend, TransactionStateStore


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="run the live suite against the real payment gateway",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--live"):
        return
    skip_live = pytest.mark.skip(reason="live gateway test (use --live to run)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing state at a temporary directory, no settle delay."""
    return Settings(
        merchants_file=tmp_path / "merchants.json",
        state_dir=tmp_path,
        refund_settle_delay=0,
    )


@pytest.fixture
def merchant() -> Merchant:
    """The sample merchant used across unit tests."""
    return Merchant(merchant="Google", mid="m1", password="p1")


@pytest.fixture
def store() -> TransactionStateStore:
    """An in-memory transaction state store."""
    return TransactionStateStore(InMemoryStateBackend())


@pytest.fixture
def mock_gateway_client() -> MagicMock:
    """Create a mock gateway client."""
    client = MagicMock(spec=GatewayClient)

    client.create_intent = AsyncMock()
    client.check_status = AsyncMock()
    client.refund = AsyncMock()
    client.close = AsyncMock()

    return client


def make_response(status_code: int = 200, data=None) -> GatewayResponse:
    """Create a gateway response."""
    return GatewayResponse(status_code=status_code, data={} if data is None else data)


def make_validation_error(
    message: str,
    path: str | None = None,
    error_type: str | None = None,
    *extra_messages: str,
) -> GatewayResponse:
    """Create the gateway's 400 body for a rejected field."""
    errors = [{"message": message, "path": [path] if path else [], "type": error_type}]
    errors.extend({"message": m, "path": [path] if path else []} for m in extra_messages)
    return make_response(
        400, {"status": False, "message": "Invalid request", "errors": errors}
    )


def make_intent_body(transaction_id: str = "T1") -> dict:
    """Create a successful intent body."""
    return {
        "status": True,
        "data": "Intent created",
        "transaction_id": transaction_id,
        "message": "Success",
        "status_code": 200,
        "ref_link": f"https://checkout.test/pay/{transaction_id}",
    }


def make_status_body(
    transaction_id: str = "T1",
    status: str = "CAPTURED",
    message: str = "Payment captured successfully",
    amount=10,
    refund_items=None,
    currency: str = "INR",
) -> dict:
    """Create a status check body (amount in major units)."""
    return {
        "amount": amount,
        "currency": currency,
        "transactionId": transaction_id,
        "orderId": "Pin2048736849",
        "refund_items": refund_items or [],
        "customer_details": {"email": "qa.automation@example.com", "mobile": "9876543210"},
        "payment_details": {"type": "card"},
        "status": status,
        "message": message,
        "payment_method_type": "automatic",
        "integration_response": {"raw_response": {"id": "pay_1", "status": "captured"}},
    }


def make_refund_body(
    transaction_id: str = "T1",
    amount: int = 1000,
    txn_amount: int = 1000,
    status_code: str = "REFUNDED",
    message: str = "Transaction has been refunded",
    gateway: str = "razorpay",
    raw_status: str = "processed",
    remaining=None,
    currency: str = "INR",
) -> dict:
    """Create an accepted refund body (amounts in minor units)."""
    detail = {
        "txn_id": transaction_id,
        "refund_id": "rfnd_1",
        "txn_amount": txn_amount,
        "amount": amount,
        "net_amount": txn_amount,
        "status": status_code,
        "currency": currency,
        "gateway": gateway,
    }
    if remaining is not None:
        detail["remaining_amnt"] = remaining
    return {
        "id": "ref_1",
        "status": True,
        "status_code": status_code,
        "acquirer_status_code": status_code,
        "message": message,
        "txn_detail": detail,
        "raw_response": {
            "id": "rfnd_1",
            "amount": amount,
            "currency": currency,
            "entity": "refund",
            "status": raw_status,
        },
        "refund_createdAt": "2026-10-19T10:00:00Z",
    }
