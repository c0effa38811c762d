"""Hosted checkout flows as ordered candidate lists.

Third-party checkout widgets drift: a selector that works today is gone
tomorrow and a button sometimes ignores a normal click. Each step of a
flow therefore lists (locator, action) candidates that are tried in order
with a short timeout; the first one that works wins, and if none does the
step fails with every attempt's error.

Page objects follow Playwright's async API (``page.locator``,
``locator.click``, ``locator.fill``, ``page.goto``, ``page.wait_for_url``).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from gateway_qa.domain.exceptions import CheckoutStepError

logger = structlog.get_logger()

DEFAULT_CANDIDATE_TIMEOUT_MS = 5_000


class Action(str, Enum):
    CLICK = "click"
    FILL = "fill"
    CHECK = "check"


@dataclass(frozen=True)
class Candidate:
    """One way of performing a step."""

    locator: str
    action: Action = Action.CLICK
    value: str | None = None
    description: str = ""

    @property
    def label(self) -> str:
        return self.description or f"{self.action.value} {self.locator}"


@dataclass(frozen=True)
class CheckoutStep:
    """A step of a flow: candidates tried in order.

    Attributes:
        name: Step name used in logs and errors.
        candidates: Ways to perform the step, most likely first.
        timeout_ms: Timeout per candidate.
        optional: Whether the flow continues when every candidate fails.
    """

    name: str
    candidates: tuple[Candidate, ...]
    timeout_ms: int = DEFAULT_CANDIDATE_TIMEOUT_MS
    optional: bool = False


@dataclass(frozen=True)
class CheckoutFlow:
    name: str
    steps: tuple[CheckoutStep, ...]


@dataclass
class CheckoutOutcome:
    """Result of driving a checkout page.

    Attributes:
        flow: Flow name.
        reached_success: Whether the browser landed on the success URL.
        final_url: URL the browser ended on.
        failed_step: Step that failed, if any.
        error: Error text of the failed step or final wait.
        completed_steps: Names of steps that succeeded.
    """

    flow: str
    reached_success: bool
    final_url: str = ""
    failed_step: str | None = None
    error: str | None = None
    completed_steps: list[str] = field(default_factory=list)


# ============================================================================
# Candidate execution
# ============================================================================


async def click_with_fallbacks(locator: Any, timeout_ms: int = DEFAULT_CANDIDATE_TIMEOUT_MS) -> str:
    """Click an element: plain, then forced, then by script.

    Returns:
        Name of the strategy that worked.

    Raises:
        CheckoutStepError: If the element never appeared or every strategy failed.
    """
    try:
        await locator.wait_for(state="attached", timeout=timeout_ms)
    except Exception as e:
        raise CheckoutStepError("click", [("wait for element", str(e))]) from e

    strategies = (
        ("plain", lambda: locator.click(timeout=timeout_ms)),
        ("forced", lambda: locator.click(timeout=timeout_ms, force=True)),
        ("scripted", lambda: locator.evaluate("el => el.click()", timeout=timeout_ms)),
    )
    attempts: list[tuple[str, str]] = []
    for name, attempt in strategies:
        try:
            await attempt()
        except Exception as e:
            attempts.append((name, str(e)))
            continue
        if attempts:
            logger.debug("Click needed fallback", strategy=name, failed=[a[0] for a in attempts])
        return name
    raise CheckoutStepError("click", attempts)


async def perform(page: Any, candidate: Candidate, timeout_ms: int) -> None:
    """Perform one candidate on a page."""
    locator = page.locator(candidate.locator).first
    if candidate.action is Action.CLICK:
        await click_with_fallbacks(locator, timeout_ms)
    elif candidate.action is Action.FILL:
        await locator.fill(candidate.value or "", timeout=timeout_ms)
    elif candidate.action is Action.CHECK:
        await locator.check(timeout=timeout_ms)
    else:
        raise ValueError(f"Unsupported action: {candidate.action}")


async def try_candidates(
    page: Any,
    candidates: tuple[Candidate, ...] | list[Candidate],
    timeout_ms: int = DEFAULT_CANDIDATE_TIMEOUT_MS,
    step: str = "step",
) -> Candidate:
    """Try candidates in order until one succeeds.

    Returns:
        The candidate that worked.

    Raises:
        CheckoutStepError: Aggregating every attempt's error if none worked.
    """
    attempts: list[tuple[str, str]] = []
    for candidate in candidates:
        try:
            await perform(page, candidate, timeout_ms)
        except Exception as e:
            attempts.append((candidate.label, str(e)))
            continue
        return candidate
    raise CheckoutStepError(step, attempts)


async def run_checkout(
    page: Any,
    flow: CheckoutFlow,
    redirect_url: str,
    success_url: str,
    *,
    navigation_timeout_ms: int = 30_000,
    success_timeout_ms: int = 100_000,
) -> CheckoutOutcome:
    """Drive a hosted checkout page and watch for the success redirect.

    Args:
        page: Playwright-style page.
        flow: Steps to perform.
        redirect_url: Checkout URL returned with the intent.
        success_url: URL the gateway redirects to after a successful payment.
        navigation_timeout_ms: Timeout for loading the checkout page.
        success_timeout_ms: Timeout for the success redirect.

    Returns:
        The outcome; a failed step does not raise.
    """
    outcome = CheckoutOutcome(flow=flow.name, reached_success=False)
    await page.goto(redirect_url, timeout=navigation_timeout_ms)

    for step in flow.steps:
        try:
            used = await try_candidates(page, step.candidates, step.timeout_ms, step.name)
        except CheckoutStepError as e:
            if step.optional:
                logger.debug("Optional checkout step skipped", flow=flow.name, step=step.name)
                continue
            logger.warning("Checkout step failed", flow=flow.name, step=step.name, error=e.message)
            outcome.failed_step = step.name
            outcome.error = e.message
            outcome.final_url = page.url
            return outcome
        logger.debug("Checkout step done", flow=flow.name, step=step.name, candidate=used.label)
        outcome.completed_steps.append(step.name)

    try:
        await page.wait_for_url(success_url, timeout=success_timeout_ms)
    except Exception as e:
        outcome.error = f"success redirect not reached: {e}"
    else:
        outcome.reached_success = True
    outcome.final_url = page.url
    logger.info(
        "Checkout finished",
        flow=flow.name,
        reached_success=outcome.reached_success,
        final_url=outcome.final_url,
    )
    return outcome


# ============================================================================
# Hosted page flows
# ============================================================================

TEST_CARD_NUMBER = "5267318187975449"
TEST_UPI_VPA = "test@razorpay"

_PAY_NOW = CheckoutStep(
    "pay now",
    (
        Candidate("#pay-now", description="pay button"),
        Candidate("button:has-text('Pay')", description="pay button by text"),
    ),
)

_SIMULATOR_SUCCESS = CheckoutStep(
    "simulate success",
    (Candidate('button[data-val="S"]', description="simulator success button"),),
    timeout_ms=30_000,
)

CARD_FLOW = CheckoutFlow(
    "card",
    (
        CheckoutStep(
            "card number",
            (Candidate('input[name="card[number]"]', Action.FILL, TEST_CARD_NUMBER),),
        ),
        CheckoutStep(
            "card expiry",
            (Candidate('input[name="card[expiry]"]', Action.FILL, "12/30"),),
        ),
        CheckoutStep(
            "card cvv",
            (Candidate('input[name="card[cvv]"]', Action.FILL, "123"),),
        ),
        CheckoutStep(
            "card holder",
            (Candidate('input[name="card[name]"]', Action.FILL, "Test"),),
            optional=True,
        ),
        _PAY_NOW,
        _SIMULATOR_SUCCESS,
    ),
)

NETBANKING_FLOW = CheckoutFlow(
    "netbanking",
    (
        CheckoutStep("netbanking tab", (Candidate("//li[@m='net']"),)),
        CheckoutStep(
            "bank",
            tuple(
                Candidate(f"//label[@for='netbanking-bank-{code}']", description=bank)
                for code, bank in (
                    ("SBIN", "State Bank of India"),
                    ("HDFC", "HDFC Bank"),
                    ("ICIC", "ICICI Bank"),
                    ("UTIB", "Axis Bank"),
                    ("KKBK", "Kotak Mahindra Bank"),
                )
            ),
            timeout_ms=2_000,
        ),
        _PAY_NOW,
        _SIMULATOR_SUCCESS,
    ),
)

UPI_FLOW = CheckoutFlow(
    "upi",
    (
        CheckoutStep("upi tab", (Candidate("//li[@m='upi']"),)),
        CheckoutStep("vpa", (Candidate("//input[@name='vpa']", Action.FILL, TEST_UPI_VPA),)),
        _PAY_NOW,
    ),
)
