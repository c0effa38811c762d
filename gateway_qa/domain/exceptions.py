"""Harness exceptions.

Errors raised by the QA harness itself. Gateway rejections are not
exceptions here: a 4xx from the gateway is data that a scenario asserts
against. These classes cover configuration problems, transport failures
and failed expectations.
"""

from typing import Any


class HarnessError(Exception):
    """Base class for all harness exceptions."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize harness error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Configuration Errors
# ============================================================================


class MerchantConfigError(HarnessError):
    """Raised when the merchant credentials file is missing or unreadable."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Cannot load merchants from {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class MerchantNotFoundError(HarnessError):
    """Raised when the merchant selector matches no configured merchant."""

    def __init__(self, selector: str, available: list[str]) -> None:
        listing = "\n".join(f"  - {name}" for name in available)
        super().__init__(
            f"Merchant not found: {selector}\nAvailable merchants:\n{listing}",
            details={"selector": selector, "available": available},
        )


class UnknownMerchantError(HarnessError):
    """Raised when an applicability map names merchants the registry lacks."""

    def __init__(self, unknown: list[tuple[str, str]], known: list[str]) -> None:
        pairs = ", ".join(f"{case_id} -> {name!r}" for case_id, name in unknown)
        super().__init__(
            f"Applicability map references unknown merchants: {pairs}",
            details={"unknown": unknown, "known": known},
        )


# ============================================================================
# Runtime Errors
# ============================================================================


class GatewayTransportError(HarnessError):
    """Raised when a gateway call produced no HTTP response at all."""

    def __init__(self, method: str, path: str, reason: str) -> None:
        super().__init__(
            f"{method} {path} failed without a response: {reason}",
            details={"method": method, "path": path, "reason": reason},
        )


class StateStoreError(HarnessError):
    """Raised when a persisted transaction record cannot be read."""

    pass


class CheckoutStepError(HarnessError):
    """Raised when every candidate of a checkout step failed.

    Attributes:
        step: Name of the step that failed.
        attempts: One ``(candidate description, error)`` pair per candidate.
    """

    def __init__(self, step: str, attempts: list[tuple[str, str]]) -> None:
        tried = "; ".join(f"{desc}: {err}" for desc, err in attempts) or "no candidates"
        super().__init__(
            f"Checkout step '{step}' failed ({tried})",
            details={"step": step, "attempts": attempts},
        )
        self.step = step
        self.attempts = attempts


class ExpectationFailed(HarnessError, AssertionError):
    """Raised when a gateway response does not match what a scenario expects.

    Subclasses AssertionError so pytest reports it as a test failure.
    """

    pass
