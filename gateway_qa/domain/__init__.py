"""Domain layer - pure rules of the QA harness.

- **Applicability**: which test cases apply to which merchants
- **Transaction status**: the lifecycle the gateway reports
- **Payloads**: request builders for intent, status and refund calls
- **Schemas**: strict response shapes
- **Exceptions**: harness errors
"""

from gateway_qa.domain.applicability import (
    APPLICABILITY,
    INTENT_APPLICABILITY,
    KNOWN_MERCHANTS,
    REFUND_APPLICABILITY,
    STATUS_APPLICABILITY,
    ApplicabilityMap,
    ScenarioFamily,
    get_applicability,
    validate_applicability,
)
from gateway_qa.domain.exceptions import (
    CheckoutStepError,
    ExpectationFailed,
    GatewayTransportError,
    HarnessError,
    MerchantConfigError,
    MerchantNotFoundError,
    StateStoreError,
    UnknownMerchantError,
)
from gateway_qa.domain.transaction_status import (
    REFUNDABLE_STATUSES,
    REPORTED_STATUSES,
    TransactionStatus,
    is_refundable,
)

__all__ = [
    "APPLICABILITY",
    "INTENT_APPLICABILITY",
    "KNOWN_MERCHANTS",
    "REFUND_APPLICABILITY",
    "STATUS_APPLICABILITY",
    "ApplicabilityMap",
    "ScenarioFamily",
    "get_applicability",
    "validate_applicability",
    "CheckoutStepError",
    "ExpectationFailed",
    "GatewayTransportError",
    "HarnessError",
    "MerchantConfigError",
    "MerchantNotFoundError",
    "StateStoreError",
    "UnknownMerchantError",
    "REFUNDABLE_STATUSES",
    "REPORTED_STATUSES",
    "TransactionStatus",
    "is_refundable",
]
