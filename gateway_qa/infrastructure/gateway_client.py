"""Payment gateway API client.

Thin async HTTP client for the three gateway endpoints the suite
exercises. Any HTTP status comes back as a GatewayResponse; a 400 is data
for a negative scenario, not an error. Only calls that produced no
response at all raise.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from gateway_qa.domain.exceptions import GatewayTransportError
from gateway_qa.infrastructure.config import Settings, get_settings
from gateway_qa.infrastructure.merchant_registry import Merchant

logger = structlog.get_logger()

INTENT_PATH = "/payment/intents"
STATUS_PATH = "/intent/check/status"
REFUND_PATH = "/payment/refund"


@dataclass
class GatewayResponse:
    """An HTTP response from the gateway.

    Attributes:
        status_code: HTTP status code.
        data: Decoded JSON body; non-JSON bodies are kept as ``{"raw": text}``.
        elapsed_ms: Wall time of the call in milliseconds.
    """

    status_code: int
    data: Any = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    def get(self, key: str, default: Any = None) -> Any:
        """Read a top-level body field, tolerating non-dict bodies."""
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default


class GatewayClient:
    """HTTP client for the payment gateway API.

    Carries one merchant's credentials in the ``mid`` and ``password``
    headers of every call. No retries.
    """

    def __init__(
        self,
        base_url: str,
        mid: str,
        password: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Gateway API base URL.
            mid: Merchant id header value.
            password: Merchant shared secret header value.
            timeout: Default request timeout in seconds.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.mid = mid
        self.password = password
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "mid": self.mid,
                    "password": self.password,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _post(
        self,
        path: str,
        json: dict[str, Any],
        timeout: float | None = None,
    ) -> GatewayResponse:
        """POST a JSON body.

        Args:
            path: API endpoint path.
            json: Request body.
            timeout: Per-call timeout override in seconds.

        Returns:
            GatewayResponse for any HTTP status.

        Raises:
            GatewayTransportError: On timeout or connection failure.
        """
        client = await self._get_client()
        started = time.monotonic()

        try:
            response = await client.post(
                path,
                json=json,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error("Gateway request timeout", path=path, error=str(e))
            raise GatewayTransportError("POST", path, f"timeout ({e})") from e
        except httpx.RequestError as e:
            logger.error("Gateway request failed", path=path, error=str(e))
            raise GatewayTransportError("POST", path, str(e)) from e

        elapsed_ms = (time.monotonic() - started) * 1000
        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        logger.debug(
            "Gateway response",
            path=path,
            status_code=response.status_code,
            elapsed_ms=round(elapsed_ms, 1),
        )
        return GatewayResponse(
            status_code=response.status_code,
            data=data,
            elapsed_ms=elapsed_ms,
        )

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def create_intent(
        self, payload: dict[str, Any], timeout: float | None = None
    ) -> GatewayResponse:
        """Create a payment intent."""
        return await self._post(INTENT_PATH, payload, timeout)

    async def check_status(
        self, payload: dict[str, Any], timeout: float | None = None
    ) -> GatewayResponse:
        """Check a transaction's status."""
        return await self._post(STATUS_PATH, payload, timeout)

    async def refund(
        self, payload: dict[str, Any], timeout: float | None = None
    ) -> GatewayResponse:
        """Request a full or partial refund."""
        return await self._post(REFUND_PATH, payload, timeout)


def create_gateway_client(
    merchant: Merchant,
    settings: Settings | None = None,
    *,
    blank_credentials: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> GatewayClient:
    """Build a gateway client for a merchant.

    Args:
        merchant: Merchant whose credentials go in the headers.
        settings: Settings to read base URL and timeout from.
        blank_credentials: Send empty ``mid``/``password`` (auth negatives).
        transport: Optional httpx transport.

    Returns:
        A configured, not yet connected GatewayClient.
    """
    settings = settings or get_settings()
    return GatewayClient(
        base_url=settings.intent_api_base_url,
        mid="" if blank_credentials else merchant.mid,
        password="" if blank_credentials else merchant.password,
        timeout=settings.request_timeout,
        transport=transport,
    )
