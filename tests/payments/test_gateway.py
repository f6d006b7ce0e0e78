"""Tests for the Razorpay client using httpx.MockTransport."""

import json

import httpx
import pytest

from coursehub.config.settings import Settings
from coursehub.payments.gateway import (
    GatewayUnavailableError,
    PaymentGatewayError,
    RazorpayGateway,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret="rzp_test_secret",
        razorpay_api_base="https://api.razorpay.test/v1",
    )


def _gateway(settings: Settings, handler) -> RazorpayGateway:
    return RazorpayGateway(settings, transport=httpx.MockTransport(handler))


class TestCreateOrder:
    """Tests for RazorpayGateway.create_order."""

    @pytest.mark.asyncio
    async def test_posts_amount_in_minor_units(self, settings) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id": "order_Abc123",
                    "amount": 49900,
                    "currency": "INR",
                    "receipt": "ord_1",
                    "status": "created",
                },
            )

        order = await _gateway(settings, handler).create_order(49900, "INR", "ord_1")

        assert order.id == "order_Abc123"
        assert order.amount_minor == 49900
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.razorpay.test/v1/orders"
        assert json.loads(request.content) == {
            "amount": 49900,
            "currency": "INR",
            "receipt": "ord_1",
        }
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_rejects_long_receipt(self, settings) -> None:
        gateway = _gateway(settings, lambda request: httpx.Response(200, json={}))

        with pytest.raises(PaymentGatewayError):
            await gateway.create_order(100, "INR", "r" * 41)

    @pytest.mark.asyncio
    async def test_missing_id_is_gateway_error(self, settings) -> None:
        gateway = _gateway(settings, lambda request: httpx.Response(200, json={}))

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway.create_order(100, "INR", "ord_1")
        assert exc_info.value.code == "gateway_error"

    @pytest.mark.asyncio
    async def test_not_configured(self) -> None:
        gateway = RazorpayGateway(
            Settings(razorpay_key_id=None, razorpay_key_secret=None)
        )

        assert gateway.is_configured is False
        with pytest.raises(GatewayUnavailableError):
            await gateway.create_order(100, "INR", "ord_1")


class TestFetchOrderStatus:
    """Tests for RazorpayGateway.fetch_order_status."""

    @pytest.mark.asyncio
    async def test_returns_status(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/orders/order_Abc123"
            return httpx.Response(200, json={"id": "order_Abc123", "status": "paid"})

        status = await _gateway(settings, handler).fetch_order_status("order_Abc123")

        assert status == "paid"

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, settings) -> None:
        gateway = _gateway(settings, lambda request: httpx.Response(502))

        with pytest.raises(GatewayUnavailableError) as exc_info:
            await gateway.fetch_order_status("order_Abc123")
        assert exc_info.value.code == "gateway_unavailable"

    @pytest.mark.asyncio
    async def test_client_error_is_gateway_error(self, settings) -> None:
        gateway = _gateway(
            settings,
            lambda request: httpx.Response(400, json={"error": {"code": "BAD"}}),
        )

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway.fetch_order_status("order_missing")
        assert not isinstance(exc_info.value, GatewayUnavailableError)

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GatewayUnavailableError):
            await _gateway(settings, handler).fetch_order_status("order_Abc123")

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayUnavailableError):
            await _gateway(settings, handler).fetch_order_status("order_Abc123")

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings) -> None:
        gateway = _gateway(settings, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(PaymentGatewayError):
            await gateway.fetch_order_status("order_Abc123")

    @pytest.mark.asyncio
    async def test_missing_status(self, settings) -> None:
        gateway = _gateway(settings, lambda request: httpx.Response(200, json={}))

        with pytest.raises(PaymentGatewayError):
            await gateway.fetch_order_status("order_Abc123")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [["paid"], "paid", 42, True])
    async def test_non_object_payload(self, settings, payload) -> None:
        gateway = _gateway(settings, lambda request: httpx.Response(200, json=payload))

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway.fetch_order_status("order_Abc123")
        assert exc_info.value.code == "gateway_error"
