"""Request payload builders for the gateway APIs.

Every intent gets a fresh merchant order token; scenarios override single
fields to steer the gateway into a specific validation path.
"""

import copy
import random
from typing import Any

DEFAULT_SUCCESS_URL = "https://www.formula1.com/"
DEFAULT_FAIL_URL = "https://yahoo.com"
DEFAULT_CANCEL_URL = "https://youtube.com"

# Amounts are sent in minor units (paise/cents).
DEFAULT_INTENT_AMOUNT = 1000

BASE_INTENT_PAYLOAD: dict[str, Any] = {
    "curr_code": "INR",
    "amount": DEFAULT_INTENT_AMOUNT,
    "customer_email": "qa.automation@example.com",
    "customer_mobile": "9876543210",
    "customer_first_name": "Qa",
    "customer_last_name": "Automation",
    "ord_title": "Deposit",
    "api_key": "628e28db00c2690681f80568",
    "merchant": {
        "id": "661941bceed6ee3d4cb7dc73",
        "name": "Google",
    },
    "velocity_score": 100,
    "base_currency": 1000,
    "platform_currency": 1000,
    "mask_email": "g***y@gmail.com",
    "mask_mobile": "********99",
    "is_pii": "N",
    "additional_info": {},
}


def generate_merchant_order_token(rng: random.Random | None = None) -> str:
    """Generate a merchant order token: "Pin" followed by ten digits."""
    rng = rng or random
    return f"Pin{rng.randint(1_000_000_000, 9_999_999_999)}"


def build_intent_payload(
    overrides: dict[str, Any] | None = None,
    *,
    success_url: str = DEFAULT_SUCCESS_URL,
    fail_url: str = DEFAULT_FAIL_URL,
    cancel_url: str = DEFAULT_CANCEL_URL,
) -> dict[str, Any]:
    """Build an intent payload with a fresh order token.

    Args:
        overrides: Fields to set on top of the defaults. A value of ``""``
            blanks a field, which is how negative cases are expressed.
        success_url: Redirect target after a successful payment.
        fail_url: Redirect target after a failed payment.
        cancel_url: Redirect target when the payer cancels.

    Returns:
        A new payload dict; the base payload is never mutated.
    """
    payload = copy.deepcopy(BASE_INTENT_PAYLOAD)
    payload["merchant_order_token"] = generate_merchant_order_token()
    payload["success_url"] = success_url
    payload["fail_url"] = fail_url
    payload["pg_cancel_url"] = cancel_url
    payload.update(overrides or {})
    return payload


def build_status_payload(identifier: Any, verify_supplier: Any = True) -> dict[str, Any]:
    """Build a status check payload.

    Values are passed through untyped so negative cases can send a blank
    identifier or a string where a boolean is expected.
    """
    return {"identifier": identifier, "verifySupplier": verify_supplier}


def build_refund_payload(transaction_id: Any, amount: Any) -> dict[str, Any]:
    """Build a refund payload (amount in minor units)."""
    return {"transaction_id": transaction_id, "amount": amount}
