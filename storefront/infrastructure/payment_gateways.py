"""Payment provider clients.

Two interchangeable gateways behind one interface: Razorpay-style
(amounts in minor units, HMAC-signed payment proof) and Cashfree-style
(amounts in major units, hosted payment session, status lookup).
Credentials come from the per-request PaymentConfig; HTTP clients are
created on first use.
"""

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx
import structlog

from storefront.domain.exceptions import GatewayError, GatewayNotConfiguredError
from storefront.domain.store_config import PaymentConfig
from storefront.domain.value_objects import PaymentMethod, to_decimal, to_minor_units
from storefront.infrastructure.config import settings

logger = structlog.get_logger()

MIN_RAZORPAY_AMOUNT_MINOR = 100
CASHFREE_AMOUNT_TOLERANCE = Decimal("0.01")
DEFAULT_CASHFREE_RETURN_URL = "https://example.com/checkout/success?cf_order_id={order_id}"


def _now_ms() -> int:
    return int(time.time() * 1000)


# ============================================================================
# Gateway Data Types
# ============================================================================


@dataclass
class ProviderOrderHandle:
    """Provider-side order created before the customer pays.

    Attributes:
        provider: Gateway name.
        order_id: Provider order identifier.
        amount_minor: Amount in minor units (Razorpay).
        key_id: Public key the client checkout widget needs (Razorpay).
        payment_session_id: Hosted session identifier (Cashfree).
    """

    provider: str
    order_id: str
    amount_minor: int | None = None
    key_id: str = ""
    payment_session_id: str = ""


@dataclass
class PaymentProof:
    """What the client submits after paying.

    Razorpay needs all three fields; Cashfree only the order id.
    """

    order_id: str
    payment_id: str = ""
    signature: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PaymentProof | None":
        """Parse a client proof; accepts provider-native key names."""
        if not data:
            return None
        order_id = (
            data.get("orderId")
            or data.get("razorpayOrderId")
            or data.get("razorpay_order_id")
            or data.get("cfOrderId")
            or ""
        )
        proof = cls(
            order_id=str(order_id).strip(),
            payment_id=str(
                data.get("paymentId")
                or data.get("razorpayPaymentId")
                or data.get("razorpay_payment_id")
                or ""
            ).strip(),
            signature=str(
                data.get("signature") or data.get("razorpaySignature") or data.get("razorpay_signature") or ""
            ).strip(),
        )
        return proof if proof.order_id else None


@dataclass
class PaymentVerification:
    """Outcome of verifying a payment with its provider."""

    valid: bool
    message: str = ""
    status: str = ""
    amount: Decimal | None = None


# ============================================================================
# Gateway Interface
# ============================================================================


class PaymentGateway(ABC):
    """Base class for payment provider clients."""

    provider: str = ""

    def __init__(
        self,
        config: PaymentConfig,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize gateway.

        Args:
            config: Payment settings snapshot.
            timeout: Request timeout in seconds.
            transport: Custom transport (for testing).
        """
        self.config = config
        self.timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @abstractmethod
    def _base_url(self) -> str: ...

    @abstractmethod
    def _client_options(self) -> dict[str, Any]: ...

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url(),
                timeout=self.timeout,
                transport=self._transport,
                **self._client_options(),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Call the provider and return its JSON body.

        Raises:
            GatewayError: On transport failure or non-2xx response.
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("payment_provider_unreachable", provider=self.provider, path=path, error=str(e))
            raise GatewayError(
                "Payment provider is unavailable. Please try again.",
                details={"provider": self.provider},
            ) from e

        if response.status_code >= 400:
            logger.warning(
                "payment_provider_rejected",
                provider=self.provider,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise GatewayError(
                "Payment provider rejected the request.",
                details={"provider": self.provider, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(
                "Payment provider returned an invalid response.",
                details={"provider": self.provider},
            ) from e

    @abstractmethod
    async def create_order(
        self, amount: Any, currency: str | None = None, reference: str = "", **kwargs: Any
    ) -> ProviderOrderHandle:
        """Create a provider order for ``amount`` (major units)."""

    @abstractmethod
    async def verify(self, proof: PaymentProof, expected_amount: Any = None) -> PaymentVerification:
        """Verify a submitted payment proof."""


# ============================================================================
# Razorpay
# ============================================================================


class RazorpayGateway(PaymentGateway):
    """Razorpay Orders API with HMAC-SHA256 payment signatures."""

    provider = PaymentMethod.RAZORPAY.value

    def _base_url(self) -> str:
        return settings.razorpay_api_url

    def _client_options(self) -> dict[str, Any]:
        creds = self.config.razorpay
        return {"auth": (creds.key_id, creds.key_secret)}

    def _require_credentials(self, for_verify: bool = False) -> None:
        creds = self.config.razorpay
        if for_verify:
            if not creds.key_secret:
                raise GatewayNotConfiguredError(self.provider, "Razorpay is not configured.")
            return
        if not creds.is_configured:
            raise GatewayNotConfiguredError(
                self.provider,
                "Razorpay is not configured. Add Key ID and Key Secret in Payment Settings.",
            )

    async def create_order(
        self, amount: Any, currency: str | None = None, reference: str = "", **kwargs: Any
    ) -> ProviderOrderHandle:
        """Create a Razorpay order.

        Args:
            amount: Amount in major units; sent as minor units.
            currency: ISO currency (defaults to the store currency).
            reference: Receipt id (defaults to ``rcpt_{ms}``).

        Returns:
            Handle with the provider order id, public key and minor amount.

        Raises:
            GatewayNotConfiguredError: Razorpay disabled or missing keys.
            GatewayError: Amount under 1 unit, or provider failure.
        """
        self._require_credentials()
        amount_minor = to_minor_units(amount)
        if amount_minor < MIN_RAZORPAY_AMOUNT_MINOR:
            raise GatewayError(
                "Amount must be at least 1 INR (100 paise).",
                details={"provider": self.provider, "amount_minor": amount_minor},
            )

        data = await self._request(
            "POST",
            "/orders",
            json={
                "amount": amount_minor,
                "currency": (currency or self.config.currency).upper(),
                "receipt": reference or f"rcpt_{_now_ms()}",
            },
        )
        order_id = data.get("id")
        if not order_id:
            raise GatewayError(
                "Payment provider returned an invalid response.",
                details={"provider": self.provider},
            )

        logger.info("razorpay_order_created", provider_order_id=order_id, amount_minor=amount_minor)
        return ProviderOrderHandle(
            provider=self.provider,
            order_id=order_id,
            amount_minor=amount_minor,
            key_id=self.config.razorpay.key_id,
        )

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        """HMAC-SHA256 hex digest of ``"{order_id}|{payment_id}"``."""
        return hmac.new(
            self.config.razorpay.key_secret.encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()

    async def verify(self, proof: PaymentProof, expected_amount: Any = None) -> PaymentVerification:
        """Check the payment signature and, optionally, the order amount.

        Args:
            proof: Order id, payment id and signature from checkout.
            expected_amount: Major-unit amount the provider order must carry.

        Returns:
            Verification result; invalid proofs are not exceptions.

        Raises:
            GatewayNotConfiguredError: Key secret missing.
            GatewayError: Provider lookup failed.
        """
        self._require_credentials(for_verify=True)
        expected = self.expected_signature(proof.order_id, proof.payment_id)
        if not proof.signature or not hmac.compare_digest(expected, proof.signature):
            return PaymentVerification(valid=False, message="Invalid signature")

        if expected_amount is None:
            return PaymentVerification(valid=True)

        expected_minor = to_minor_units(expected_amount)
        data = await self._request("GET", f"/orders/{proof.order_id}")
        try:
            provider_minor = int(data.get("amount"))
        except (TypeError, ValueError):
            provider_minor = None
        if provider_minor != expected_minor:
            logger.warning(
                "razorpay_amount_mismatch",
                provider_order_id=proof.order_id,
                expected_minor=expected_minor,
                provider_minor=provider_minor,
            )
            return PaymentVerification(valid=False, message="Order amount mismatch")

        return PaymentVerification(
            valid=True,
            status=str(data.get("status", "")),
            amount=Decimal(provider_minor) / 100,
        )


# ============================================================================
# Cashfree
# ============================================================================


class CashfreeGateway(PaymentGateway):
    """Cashfree PG orders API with hosted payment sessions."""

    provider = PaymentMethod.CASHFREE.value

    def _base_url(self) -> str:
        if self.config.cashfree.env == "production":
            return settings.cashfree_production_url
        return settings.cashfree_sandbox_url

    def _client_options(self) -> dict[str, Any]:
        creds = self.config.cashfree
        return {
            "headers": {
                "x-client-id": creds.app_id,
                "x-client-secret": creds.secret_key,
                "x-api-version": settings.cashfree_api_version,
                "Accept": "application/json",
            }
        }

    def _require_credentials(self, for_verify: bool = False) -> None:
        creds = self.config.cashfree
        if for_verify:
            if not (creds.app_id and creds.secret_key):
                raise GatewayNotConfiguredError(self.provider, "Cashfree is not configured.")
            return
        if not creds.is_configured:
            raise GatewayNotConfiguredError(
                self.provider,
                "Cashfree is not configured. Add App ID and Secret Key in Payment Settings.",
            )

    @staticmethod
    def customer_details(raw: dict[str, Any] | None) -> dict[str, str]:
        """Provider customer block, with placeholders for missing values."""
        raw = raw or {}
        return {
            "customer_id": str(raw.get("customer_id") or raw.get("customerId") or f"cust_{_now_ms()}"),
            "customer_phone": str(raw.get("customer_phone") or raw.get("phone") or "9999999999"),
            "customer_name": str(raw.get("customer_name") or raw.get("name") or "Customer")[:100],
            "customer_email": str(
                raw.get("customer_email") or raw.get("email") or "customer@example.com"
            ),
        }

    async def create_order(
        self, amount: Any, currency: str | None = None, reference: str = "", **kwargs: Any
    ) -> ProviderOrderHandle:
        """Create a Cashfree order and payment session.

        Args:
            amount: Amount in major units.
            currency: ISO currency (defaults to the store currency).
            reference: Caller-chosen unique order id (required).
            **kwargs: ``customer_details`` and ``return_url``.

        Returns:
            Handle with the order id and payment session id.

        Raises:
            GatewayNotConfiguredError: Cashfree disabled or missing keys.
            GatewayError: Missing order id or provider failure.
        """
        self._require_credentials()
        if not reference:
            raise GatewayError("orderId is required.", details={"provider": self.provider})

        payload = {
            "order_id": reference,
            "order_amount": float(to_decimal(amount)),
            "order_currency": (currency or self.config.currency).upper(),
            "customer_details": self.customer_details(kwargs.get("customer_details")),
            "order_meta": {
                "return_url": kwargs.get("return_url") or DEFAULT_CASHFREE_RETURN_URL,
            },
        }
        data = await self._request("POST", "/orders", json=payload)
        session_id = data.get("payment_session_id")
        if not session_id:
            raise GatewayError(
                "Cashfree did not return payment session",
                details={"provider": self.provider},
            )

        logger.info("cashfree_order_created", provider_order_id=reference)
        return ProviderOrderHandle(
            provider=self.provider,
            order_id=reference,
            payment_session_id=session_id,
        )

    async def verify(self, proof: PaymentProof, expected_amount: Any = None) -> PaymentVerification:
        """Look the order up and accept ``paid`` or ``active`` status.

        Args:
            proof: Carries the Cashfree order id.
            expected_amount: Major-unit amount the provider order must carry,
                within 0.01.

        Returns:
            Verification result with the provider status and amount.
        """
        self._require_credentials(for_verify=True)
        data = await self._request("GET", f"/orders/{proof.order_id}")
        status = str(data.get("order_status") or "").lower()
        raw_amount = data.get("order_amount")
        amount = None if raw_amount is None else to_decimal(raw_amount)
        if status not in ("paid", "active"):
            return PaymentVerification(
                valid=False,
                message=f"Payment not completed (status: {status or 'unknown'})",
                status=status,
                amount=amount,
            )

        if expected_amount is not None:
            expected = to_decimal(expected_amount)
            if amount is None or abs(amount - expected) > CASHFREE_AMOUNT_TOLERANCE:
                logger.warning(
                    "cashfree_amount_mismatch",
                    provider_order_id=proof.order_id,
                    expected=str(expected),
                    provider_amount=None if amount is None else str(amount),
                )
                return PaymentVerification(
                    valid=False,
                    message="Order amount mismatch",
                    status=status,
                    amount=amount,
                )

        return PaymentVerification(valid=True, status=status, amount=amount)


# ============================================================================
# Factory
# ============================================================================


_GATEWAYS: dict[PaymentMethod, type[PaymentGateway]] = {
    PaymentMethod.RAZORPAY: RazorpayGateway,
    PaymentMethod.CASHFREE: CashfreeGateway,
}


def create_gateway(
    method: PaymentMethod,
    config: PaymentConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PaymentGateway:
    """Create the gateway for an online payment method.

    Args:
        method: Online payment method.
        config: Payment settings snapshot.
        transport: Custom transport (for testing).

    Returns:
        Gateway instance.

    Raises:
        ValueError: If the method has no gateway (e.g. COD).
    """
    gateway_cls = _GATEWAYS.get(method)
    if gateway_cls is None:
        raise ValueError(f"No payment gateway for method: {method}")
    return gateway_cls(config, transport=transport)
