"""Tests for payment API endpoints."""

import asyncio
import hashlib
import hmac
import json

import httpx
import pytest
from fastapi import status

from storefront.application.payment_service import PaymentService, get_payment_service
from storefront.domain.store_config import StoreSettings
from storefront.infrastructure.payment_gateways import create_gateway
from storefront.infrastructure.repositories import get_repositories
from storefront.main import app

PAYMENT_SETTINGS = {
    "currency": "INR",
    "razorpay": {"enabled": True, "keyId": "rzp_key", "keySecret": "rzp_secret"},
    "cashfree": {"enabled": True, "appId": "cf_app", "secretKey": "cf_secret"},
}


def sign(order_id: str, payment_id: str) -> str:
    return hmac.new(b"rzp_secret", f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class FakeProvider:
    """Answers Razorpay and Cashfree API calls."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.cashfree_status = "PAID"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.url.host == "api.razorpay.com":
            if request.method == "POST":
                body = json.loads(request.content)
                return httpx.Response(200, json={"id": "order_rzp_1", "amount": body["amount"]})
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[-1], "amount": 49900, "status": "paid"})
        if request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(200, json={"order_id": body["order_id"], "payment_session_id": "session_1"})
        return httpx.Response(200, json={"order_status": self.cashfree_status, "order_amount": 499.0})


@pytest.fixture
def provider() -> FakeProvider:
    """Payment providers reachable through a mock transport."""
    fake = FakeProvider()
    transport = httpx.MockTransport(fake)
    asyncio.run(get_repositories().settings.save(StoreSettings(payment=PAYMENT_SETTINGS)))
    service = PaymentService(gateway_factory=lambda method, config: create_gateway(method, config, transport=transport))
    app.dependency_overrides[get_payment_service] = lambda: service
    return fake


# ============================================================================
# Test: Provider Orders
# ============================================================================


class TestCreateRazorpayOrder:
    """Tests for POST /payment/create-razorpay-order."""

    def test_creates_order_in_paise(self, client, user_headers, provider):
        response = client.post(
            "/payment/create-razorpay-order",
            json={"amount": 499, "receipt": "rcpt_1"},
            headers=user_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data == {"orderId": "order_rzp_1", "keyId": "rzp_key", "amountInPaise": 49900}
        assert json.loads(provider.requests[0].content)["receipt"] == "rcpt_1"

    @pytest.mark.parametrize("amount", [None, 0.5, "abc"])
    def test_rejects_bad_amount(self, client, user_headers, provider, amount):
        response = client.post(
            "/payment/create-razorpay-order",
            json={"amount": amount},
            headers=user_headers,
        )

        assert response.status_code in (status.HTTP_400_BAD_REQUEST, status.HTTP_422_UNPROCESSABLE_ENTITY)
        assert response.json()["success"] is False
        assert provider.requests == []

    def test_unconfigured_provider(self, client, user_headers):
        """The default store has no Razorpay keys."""
        response = client.post(
            "/payment/create-razorpay-order",
            json={"amount": 100},
            headers=user_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "GATEWAY_NOT_CONFIGURED"

    def test_requires_user(self, client, provider):
        response = client.post("/payment/create-razorpay-order", json={"amount": 100})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestCreateCashfreeSession:
    """Tests for POST /payment/create-cashfree-session."""

    def test_creates_session(self, client, user_headers, provider):
        response = client.post(
            "/payment/create-cashfree-session",
            json={"orderId": "cf_order_1", "amount": 499, "customerDetails": {"name": "Asha"}},
            headers=user_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"orderId": "cf_order_1", "paymentSessionId": "session_1"}
        sent = json.loads(provider.requests[0].content)
        assert sent["customer_details"]["customer_name"] == "Asha"
        assert provider.requests[0].headers["x-client-id"] == "cf_app"

    def test_order_id_required(self, client, user_headers, provider):
        response = client.post(
            "/payment/create-cashfree-session",
            json={"amount": 499},
            headers=user_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "orderId is required."


# ============================================================================
# Test: Verification
# ============================================================================


class TestVerifyRazorpay:
    """Tests for POST /payment/verify-razorpay."""

    def test_valid_signature(self, client, user_headers, provider):
        response = client.post(
            "/payment/verify-razorpay",
            json={
                "razorpayOrderId": "order_rzp_1",
                "razorpayPaymentId": "pay_1",
                "signature": sign("order_rzp_1", "pay_1"),
            },
            headers=user_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["valid"] is True
        # No amount given, so the provider is not consulted
        assert provider.requests == []

    def test_invalid_signature_is_not_an_error(self, client, user_headers, provider):
        response = client.post(
            "/payment/verify-razorpay",
            json={"razorpayOrderId": "order_rzp_1", "razorpayPaymentId": "pay_1", "signature": "forged"},
            headers=user_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"valid": False, "message": "Invalid signature"}

    def test_amount_checked_against_provider(self, client, user_headers, provider):
        response = client.post(
            "/payment/verify-razorpay",
            json={
                "razorpayOrderId": "order_rzp_1",
                "razorpayPaymentId": "pay_1",
                "signature": sign("order_rzp_1", "pay_1"),
                "amount": 500,
            },
            headers=user_headers,
        )

        assert response.json()["data"] == {"valid": False, "message": "Order amount mismatch"}

    def test_ids_required(self, client, user_headers, provider):
        response = client.post("/payment/verify-razorpay", json={"signature": "x"}, headers=user_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestVerifyCashfree:
    """Tests for POST /payment/verify-cashfree."""

    def test_paid(self, client, user_headers, provider):
        response = client.post("/payment/verify-cashfree", json={"orderId": "cf_order_1"}, headers=user_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"paid": True, "orderStatus": "paid", "amount": 499.0}

    def test_not_paid(self, client, user_headers, provider):
        provider.cashfree_status = "EXPIRED"

        response = client.post("/payment/verify-cashfree", json={"orderId": "cf_order_1"}, headers=user_headers)

        data = response.json()["data"]
        assert data["paid"] is False
        assert data["orderStatus"] == "expired"
