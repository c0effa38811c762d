"""Response classification and scenario expectations.

Negative scenarios expect the gateway to reject a request; if it accepts
one the scenario fails. Checks raise ExpectationFailed (an AssertionError)
with the offending body attached so pytest output shows what came back.
"""

import re
from enum import Enum
from typing import Any, NoReturn

import pytest
import structlog
from pydantic import BaseModel, ValidationError

from gateway_qa.domain.exceptions import ExpectationFailed
from gateway_qa.domain.schemas import LenientErrorEnvelope, validate_shape
from gateway_qa.infrastructure.gateway_client import GatewayResponse

logger = structlog.get_logger()

AUTH_FAILURE_PATTERN = re.compile(r"invalid|unauthori[sz]ed", re.IGNORECASE)


class ResponseKind(str, Enum):
    """How a gateway response should be read."""

    ACCEPTED = "accepted"
    VALIDATION_REJECTED = "validation_rejected"
    AUTH_REJECTED = "auth_rejected"
    REJECTED = "rejected"
    SERVER_ERROR = "server_error"


def classify_response(response: GatewayResponse) -> ResponseKind:
    """Sort a response into accepted, rejected or failed.

    A 2xx whose body carries ``status: false`` is a rejection: the gateway
    sometimes reports refusals that way.
    """
    if response.ok:
        if response.get("status") is False:
            return ResponseKind.REJECTED
        return ResponseKind.ACCEPTED
    if response.status_code in (401, 403):
        return ResponseKind.AUTH_REJECTED
    if response.status_code in (400, 422):
        return ResponseKind.VALIDATION_REJECTED
    if response.status_code >= 500:
        return ResponseKind.SERVER_ERROR
    return ResponseKind.REJECTED


def parse_error_envelope(response: GatewayResponse) -> LenientErrorEnvelope:
    """Read an error body without enforcing its shape."""
    data = response.data if isinstance(response.data, dict) else {}
    try:
        return LenientErrorEnvelope.model_validate(data)
    except ValidationError:
        return LenientErrorEnvelope(message=str(data.get("message", "")))


def is_expected_validation_failure(response: GatewayResponse) -> bool:
    """True when the gateway refused a request because of its content."""
    return classify_response(response) is ResponseKind.VALIDATION_REJECTED


# ============================================================================
# Checks
# ============================================================================


def fail(message: str, **context: Any) -> NoReturn:
    """Raise ExpectationFailed with context."""
    raise ExpectationFailed(message, details=context)


def check(condition: bool, message: str, **context: Any) -> None:
    """Raise ExpectationFailed unless condition holds."""
    if not condition:
        fail(message, **context)


def check_equal(actual: Any, expected: Any, what: str) -> None:
    """Require actual == expected."""
    check(actual == expected, f"{what}: expected {expected!r}, got {actual!r}")


def check_in(actual: Any, allowed: Any, what: str) -> None:
    """Require actual to be one of allowed."""
    check(actual in allowed, f"{what}: {actual!r} not in {sorted(allowed)!r}")


def check_contains(actual: str | None, fragment: str, what: str) -> None:
    """Require a string to contain a fragment."""
    check(
        actual is not None and fragment in actual,
        f"{what}: expected to contain {fragment!r}, got {actual!r}",
    )


def check_present(value: Any, what: str) -> None:
    """Require a truthy value."""
    check(bool(value), f"{what} is missing or empty (got {value!r})")


def expect_shape(model: type[BaseModel], data: Any, what: str = "response") -> None:
    """Require data to match a strict shape."""
    violations = validate_shape(model, data)
    check(
        not violations,
        f"{what} does not match {model.__name__}: " + "; ".join(violations),
        violations=violations,
    )


def expect_success(response: GatewayResponse, *, status_flag: bool = True) -> dict[str, Any]:
    """Require a 2xx response (and ``status: true`` when status_flag).

    Returns:
        The response body.
    """
    check(
        response.ok,
        f"Gateway returned {response.status_code}: {response.data!r}",
        status_code=response.status_code,
        body=response.data,
    )
    check(isinstance(response.data, dict), f"Expected a JSON object, got {response.data!r}")
    if status_flag:
        check(
            response.data.get("status") is True,
            f"Expected status true, got {response.data.get('status')!r}: {response.data!r}",
        )
    return response.data


def expect_rejection(
    response: GatewayResponse, *, status: int | None = None
) -> LenientErrorEnvelope:
    """Require the gateway to have refused the request.

    Args:
        response: The gateway response.
        status: Exact HTTP status expected, if any.

    Returns:
        The parsed error body.
    """
    kind = classify_response(response)
    check(
        kind is not ResponseKind.ACCEPTED,
        f"Gateway accepted a request it should reject ({response.status_code}): {response.data!r}",
        status_code=response.status_code,
        body=response.data,
    )
    if status is not None:
        check_equal(response.status_code, status, "HTTP status")
    return parse_error_envelope(response)


def expect_auth_rejection(response: GatewayResponse, expected_status: int) -> LenientErrorEnvelope:
    """Require a blank-credentials call to be refused.

    Most merchants answer 401; some processors answer 400.
    """
    envelope = expect_rejection(response, status=expected_status)
    check_equal(envelope.status, False, "status")
    check(
        bool(AUTH_FAILURE_PATTERN.search(envelope.message)),
        f"Expected an invalid/unauthorized message, got {envelope.message!r}",
    )
    return envelope


def skip_scenario(reason: str, **context: Any) -> NoReturn:
    """Skip the running test, logging why."""
    logger.info("Scenario skipped", reason=reason, **context)
    pytest.skip(reason)
