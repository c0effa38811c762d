"""Response shapes of the gateway APIs.

Pydantic models for the envelopes the suite asserts against. Shape checks
use strict mode so a number sent as a string, or a boolean sent as
``"true"``, counts as a violation. Extra keys are always allowed: the
gateway adds processor-specific fields freely.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class GatewayModel(BaseModel):
    """Base for strict gateway shapes."""

    model_config = ConfigDict(strict=True, extra="allow")


# ============================================================================
# Errors
# ============================================================================


class ErrorItem(GatewayModel):
    """One field-level validation error."""

    message: str
    path: list[Any] | None = None
    type: str | None = None


class ErrorEnvelope(GatewayModel):
    """Body of a rejected request."""

    status: bool
    message: str
    errors: list[ErrorItem]


class LenientErrorEnvelope(BaseModel):
    """Error body parsed for reading, not for shape checks."""

    model_config = ConfigDict(extra="allow")

    status: bool | None = None
    message: str = ""
    errors: list[dict[str, Any]] = Field(default_factory=list)

    def error_message(self, index: int = 0) -> str | None:
        """Get the message of the error at index, if any."""
        if index < len(self.errors):
            value = self.errors[index].get("message")
            return None if value is None else str(value)
        return None

    def error_path(self, index: int = 0) -> str | None:
        """Get the first path segment of the error at index, if any."""
        if index < len(self.errors):
            path = self.errors[index].get("path") or []
            return str(path[0]) if path else None
        return None

    def error_type(self, index: int = 0) -> str | None:
        """Get the type of the error at index, if any."""
        if index < len(self.errors):
            value = self.errors[index].get("type")
            return None if value is None else str(value)
        return None

    @property
    def has_field_errors(self) -> bool:
        """True when the gateway pointed at specific request fields."""
        return any(item.get("path") for item in self.errors)


# ============================================================================
# Intent
# ============================================================================


class IntentResponse(GatewayModel):
    """Successful intent creation."""

    status: bool
    data: str
    transaction_id: str
    message: str
    status_code: int | float
    ref_link: str


# ============================================================================
# Status Check
# ============================================================================


class CustomerDetails(GatewayModel):
    email: str
    mobile: str


class PaymentDetails(GatewayModel):
    type: str


class IntegrationResponse(GatewayModel):
    raw_response: dict[str, Any]


class StatusCheckResponse(GatewayModel):
    """Status check for a known transaction."""

    amount: float | str
    currency: str
    transactionId: str
    orderId: str
    refund_items: list[Any]
    customer_details: CustomerDetails
    payment_details: PaymentDetails
    status: str
    message: str
    payment_method_type: str
    integration_response: IntegrationResponse


class SettledStatusCheckResponse(StatusCheckResponse):
    """Status check for a transaction that has not been refunded yet."""

    status: Literal["CAPTURED", "FAIL", "INPROGRESS"]


# ============================================================================
# Refund
# ============================================================================


class RefundTxnDetail(GatewayModel):
    txn_id: str
    refund_id: str
    txn_amount: float
    amount: float
    net_amount: float
    status: str
    currency: str
    gateway: str | None = None
    remaining_amnt: float | None = None


class RefundRawResponse(GatewayModel):
    id: str
    amount: float
    currency: str
    entity: str
    status: str


class RefundResponse(GatewayModel):
    """Accepted refund request."""

    id: str
    status: bool
    status_code: str
    acquirer_status_code: str
    message: str
    txn_detail: RefundTxnDetail
    raw_response: RefundRawResponse
    refund_createdAt: str


def validate_shape(model: type[BaseModel], data: Any) -> list[str]:
    """Check data against a model.

    Args:
        model: The expected shape.
        data: Decoded JSON body.

    Returns:
        One ``"<location>: <message>"`` line per violation; empty if valid.
    """
    try:
        model.model_validate(data)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
    return []


def is_valid_shape(model: type[BaseModel], data: Any) -> bool:
    """Check data against a model, returning a bool."""
    return not validate_shape(model, data)
