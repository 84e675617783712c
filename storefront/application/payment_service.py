"""Payment application service.

Creates provider orders for the storefront's online checkout and
verifies payments the client reports back. Credentials come from the
store's payment settings, read fresh on every call.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from storefront.application.fulfillment_service import GatewayFactory
from storefront.domain.exceptions import ValidationError
from storefront.domain.store_config import PaymentConfig
from storefront.domain.value_objects import PaymentMethod
from storefront.infrastructure.payment_gateways import (
    PaymentProof,
    PaymentVerification,
    ProviderOrderHandle,
    create_gateway,
)
from storefront.infrastructure.repositories import Repositories, get_repositories

logger = structlog.get_logger()


def _parse_amount(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


class PaymentService:
    """Provider order creation and payment verification."""

    def __init__(
        self,
        repositories: Repositories | None = None,
        gateway_factory: GatewayFactory | None = None,
    ) -> None:
        """Initialize service.

        Args:
            repositories: Repository bundle (uses global if not provided).
            gateway_factory: Builds payment gateways (for testing).
        """
        self.repos = repositories or get_repositories()
        self.gateway_factory = gateway_factory or create_gateway

    async def _config(self) -> PaymentConfig:
        return PaymentConfig.from_settings(await self.repos.settings.get())

    async def create_razorpay_order(
        self, amount: Any, currency: str | None = None, receipt: str | None = None
    ) -> ProviderOrderHandle:
        """Create a Razorpay order for the client checkout widget.

        Raises:
            ValidationError: Amount missing or below 1.
            GatewayError: Razorpay unconfigured or failing.
        """
        value = _parse_amount(amount)
        if value is None or value < 1:
            raise ValidationError("Valid amount (≥ 1) is required.", details={"amount": amount})

        gateway = self.gateway_factory(PaymentMethod.RAZORPAY, await self._config())
        try:
            return await gateway.create_order(value, currency=currency, reference=receipt or "")
        finally:
            await gateway.close()

    async def create_cashfree_session(
        self,
        order_id: str | None,
        amount: Any,
        currency: str | None = None,
        customer_details: dict[str, Any] | None = None,
        return_url: str | None = None,
    ) -> ProviderOrderHandle:
        """Create a Cashfree order and hosted payment session.

        Raises:
            ValidationError: Missing order id or negative amount.
            GatewayError: Cashfree unconfigured or failing.
        """
        reference = (order_id or "").strip()
        if not reference:
            raise ValidationError("orderId is required.")
        value = _parse_amount(amount)
        if value is None or value < 0:
            raise ValidationError("Valid amount is required.", details={"amount": amount})

        gateway = self.gateway_factory(PaymentMethod.CASHFREE, await self._config())
        try:
            return await gateway.create_order(
                value,
                currency=currency,
                reference=reference,
                customer_details=customer_details or {},
                return_url=return_url,
            )
        finally:
            await gateway.close()

    async def verify_razorpay(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        amount: Any = None,
    ) -> PaymentVerification:
        """Check a Razorpay signature and, when given, the order amount.

        Raises:
            ValidationError: Order or payment id missing.
        """
        if not (order_id or "").strip() or not (payment_id or "").strip():
            raise ValidationError("razorpayOrderId and razorpayPaymentId are required.")
        proof = PaymentProof(order_id=order_id.strip(), payment_id=payment_id.strip(), signature=(signature or "").strip())

        gateway = self.gateway_factory(PaymentMethod.RAZORPAY, await self._config())
        try:
            result = await gateway.verify(proof, expected_amount=_parse_amount(amount))
        finally:
            await gateway.close()
        logger.info("razorpay_payment_checked", provider_order_id=proof.order_id, valid=result.valid)
        return result

    async def verify_cashfree(self, order_id: str | None) -> PaymentVerification:
        """Look up a Cashfree order's payment status.

        Raises:
            ValidationError: Order id missing.
        """
        reference = (order_id or "").strip()
        if not reference:
            raise ValidationError("orderId is required.")

        gateway = self.gateway_factory(PaymentMethod.CASHFREE, await self._config())
        try:
            result = await gateway.verify(PaymentProof(order_id=reference))
        finally:
            await gateway.close()
        logger.info("cashfree_payment_checked", provider_order_id=reference, status=result.status)
        return result


# Global service instance
_payment_service: PaymentService | None = None


def get_payment_service() -> PaymentService:
    """Get payment service singleton."""
    global _payment_service
    if _payment_service is None:
        _payment_service = PaymentService()
    return _payment_service


def reset_payment_service() -> None:
    """Reset payment service (for testing)."""
    global _payment_service
    _payment_service = None
