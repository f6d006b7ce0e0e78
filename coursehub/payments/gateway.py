"""Razorpay REST client for order creation and status lookup.

This client handles:
- Creating gateway orders for course purchases
- Fetching the authoritative order status during payment confirmation

SECURITY: key_secret is kept server-side; only the order id and key id are
ever returned to clients.
"""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from coursehub.config.settings import Settings


logger = structlog.get_logger(__name__)

# Razorpay rejects receipts longer than this
MAX_RECEIPT_LENGTH = 40

# Gateway order status meaning "captured in full"
GATEWAY_STATUS_PAID = "paid"


@dataclass
class GatewayOrder:
    """Order as created at the gateway."""

    id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str


class PaymentGatewayError(Exception):
    """Gateway answered but refused the request (4xx or malformed reply)."""

    def __init__(
        self, message: str = "Payment gateway error", code: str = "gateway_error"
    ):
        self.message = message
        self.code = code
        super().__init__(message)


class GatewayUnavailableError(PaymentGatewayError):
    """Gateway unreachable, timing out, failing (5xx) or not configured."""

    def __init__(self, message: str = "Payment gateway unavailable"):
        super().__init__(message, "gateway_unavailable")


class RazorpayGateway:
    """Thin async client over the Razorpay orders API.

    Every call is bounded by ``razorpay_timeout_seconds`` and never retried
    here; callers decide whether to try again.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._key_id = settings.razorpay_key_id
        self._key_secret = settings.razorpay_key_secret
        self._api_base = settings.razorpay_api_base.rstrip("/")
        self._timeout = settings.razorpay_timeout_seconds
        self._transport = transport

    @property
    def key_id(self) -> str | None:
        """Public key id, handed to checkout clients."""
        return self._key_id

    @property
    def is_configured(self) -> bool:
        return bool(self._key_id and self._key_secret)

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise GatewayUnavailableError("Payment gateway is not configured")

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self._ensure_configured()
        url = f"{self._api_base}{path}"

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                auth=(self._key_id or "", self._key_secret or ""),
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, json=json)
        except httpx.TimeoutException as e:
            logger.error("razorpay_timeout", method=method, path=path, error=str(e))
            raise GatewayUnavailableError("Payment gateway timeout") from e
        except httpx.RequestError as e:
            logger.error(
                "razorpay_request_error", method=method, path=path, error=str(e)
            )
            raise GatewayUnavailableError(f"Payment gateway request error: {e}") from e

        if response.status_code >= httpx.codes.INTERNAL_SERVER_ERROR:
            logger.error(
                "razorpay_server_error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise GatewayUnavailableError(
                f"Payment gateway error: {response.status_code}"
            )

        if response.status_code >= httpx.codes.BAD_REQUEST:
            logger.error(
                "razorpay_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise PaymentGatewayError(
                f"Payment gateway rejected request: {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PaymentGatewayError("Payment gateway returned invalid JSON") from e

        if not isinstance(data, dict):
            logger.error(
                "razorpay_unexpected_payload",
                method=method,
                path=path,
                payload_type=type(data).__name__,
            )
            raise PaymentGatewayError("Payment gateway returned an unexpected payload")
        return data

    async def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
    ) -> GatewayOrder:
        """Create an order at the gateway.

        Args:
            amount_minor: Amount in the currency's minor unit (paise for INR).
            currency: ISO currency code.
            receipt: Merchant receipt, at most 40 characters.

        Raises:
            GatewayUnavailableError: Gateway unreachable or not configured.
            PaymentGatewayError: Gateway rejected the order.
        """
        if len(receipt) > MAX_RECEIPT_LENGTH:
            raise PaymentGatewayError("Receipt exceeds 40 characters")

        data = await self._request(
            "POST",
            "/orders",
            json={"amount": amount_minor, "currency": currency, "receipt": receipt},
        )

        try:
            order = GatewayOrder(
                id=data["id"],
                amount_minor=int(data.get("amount", amount_minor)),
                currency=data.get("currency", currency),
                receipt=data.get("receipt", receipt),
                status=data.get("status", "created"),
            )
        except KeyError as e:
            raise PaymentGatewayError("Gateway order response missing id") from e

        logger.info(
            "razorpay_order_created",
            razorpay_order_id=order.id,
            amount_minor=order.amount_minor,
            currency=order.currency,
        )
        return order

    async def fetch_order_status(self, gateway_order_id: str) -> str:
        """Return the gateway's status for an order (created, attempted, paid).

        Raises:
            GatewayUnavailableError: Gateway unreachable or not configured.
            PaymentGatewayError: Unknown order or malformed reply.
        """
        data = await self._request("GET", f"/orders/{gateway_order_id}")
        status = data.get("status")
        if not isinstance(status, str):
            raise PaymentGatewayError("Gateway order response missing status")
        return status
