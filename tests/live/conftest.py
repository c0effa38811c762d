"""Fixtures for the live gateway suite.

Every test taking ``merchant`` runs once per selected merchant. Tests
marked ``applies_to(family, case_id)`` skip for merchants the case does
not apply to.
"""

import pytest
import pytest_asyncio

from gateway_qa.application.expectations import skip_scenario
from gateway_qa.domain.applicability import get_applicability, validate_applicability
from gateway_qa.infrastructure.config import Settings, get_settings
from gateway_qa.infrastructure.gateway_client import GatewayClient, create_gateway_client
from gateway_qa.infrastructure.logging_setup import configure_logging
from gateway_qa.infrastructure.merchant_registry import Merchant, get_merchant_registry
from gateway_qa.infrastructure.state_store import TransactionStateStore, get_state_store


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    if "merchant" not in metafunc.fixturenames:
        return
    # Without --live the items are skipped anyway; don't require merchants.json.
    merchants = get_merchant_registry().selected() if metafunc.config.getoption("--live") else []
    metafunc.parametrize("merchant", merchants, ids=[m.slug for m in merchants])


@pytest.fixture(scope="session")
def settings() -> Settings:
    """Process settings from the environment."""
    return get_settings()


@pytest.fixture(scope="session", autouse=True)
def live_session(settings: Settings) -> None:
    """Configure logging and check the applicability maps once."""
    configure_logging(settings.log_level)
    if settings.strict_applicability:
        validate_applicability(get_merchant_registry().names())


@pytest.fixture(autouse=True)
def applicability_gate(request: pytest.FixtureRequest) -> None:
    """Skip before other fixtures (the browser) are set up.

    ``applies_to(family)`` without a case id reads it from the test's
    ``case`` parameter.
    """
    marker = request.node.get_closest_marker("applies_to")
    if marker is None or "merchant" not in request.fixturenames:
        return
    family, *rest = marker.args
    if rest:
        case_id = rest[0]
    else:
        case_id = request.getfixturevalue("case").case_id
    merchant: Merchant = request.getfixturevalue("merchant")
    reason = get_applicability(family).skip_reason(case_id, merchant.name)
    if reason is not None:
        skip_scenario(reason, merchant=merchant.name, case=case_id)


@pytest.fixture
def store(settings: Settings) -> TransactionStateStore:
    """File-backed store shared by the three suites."""
    return get_state_store(settings)


@pytest_asyncio.fixture
async def client(merchant: Merchant, settings: Settings) -> GatewayClient:
    """Gateway client carrying the merchant's credentials."""
    async with create_gateway_client(merchant, settings) as gateway:
        yield gateway


@pytest_asyncio.fixture
async def blank_client(merchant: Merchant, settings: Settings) -> GatewayClient:
    """Gateway client sending empty credentials."""
    async with create_gateway_client(merchant, settings, blank_credentials=True) as gateway:
        yield gateway


@pytest_asyncio.fixture
async def page(settings: Settings):
    """A fresh browser page; skips when Playwright is not installed."""
    async_api = pytest.importorskip("playwright.async_api")
    async with async_api.async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=settings.headless)
        try:
            context = await browser.new_context()
            yield await context.new_page()
        finally:
            await browser.close()
