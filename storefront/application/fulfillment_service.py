"""Order fulfillment service.

Turns a user's cart into a persisted order in a single pass:

1. Snapshot checkout, payment and notification settings
2. Validate payment method and shipping address
3. Price the cart, compute tax and pre-check stock
4. Re-validate the chosen shipping method and amount
5. Apply a coupon (rejections degrade to no discount)
6. Compute the total
7. Verify online payment proof with the provider
8. Commit as a compensating saga: coupon usage, order insert, cart
   clear, inventory deduction, notification

Every validation failure is raised before the first write. Steps after
the order insert are isolated: their failures are logged, not raised.
"""

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog

from storefront.application.inventory_service import InventoryLedger, get_inventory_ledger
from storefront.domain.base import utcnow
from storefront.domain.coupons import CouponApplication, CouponEngine
from storefront.domain.entities import Cart, Order, OrderItem, Product
from storefront.domain.exceptions import (
    CouponNotFoundError,
    CouponRejectedError,
    EmptyCartError,
    InsufficientStockError,
    InvalidPaymentMethodError,
    MissingFieldsError,
    PaymentAlreadyUsedError,
    PaymentVerificationError,
    ShippingValidationError,
)
from storefront.domain.shipping import ShippingRateResolver
from storefront.domain.store_config import (
    CheckoutConfig,
    NotificationConfig,
    PaymentConfig,
    StoreSettings,
)
from storefront.domain.value_objects import (
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    ShippingAddress,
    TaxType,
    new_id,
    round2,
    to_decimal,
)
from storefront.infrastructure.notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from storefront.infrastructure.payment_gateways import PaymentGateway, PaymentProof, create_gateway
from storefront.infrastructure.repositories import Repositories, get_repositories

logger = structlog.get_logger()

SHIPPING_TOLERANCE = Decimal("0.02")
DEFAULT_SHIPPING_COUNTRY = "IN"
FREE_SHIPPING_NAME = "Free Shipping"

GatewayFactory = Callable[[PaymentMethod, PaymentConfig], PaymentGateway]


# ============================================================================
# Commands and Intermediate Types
# ============================================================================


@dataclass
class PlaceOrderCommand:
    """Order placement request from an authenticated user."""

    user_id: str
    shipping_address: dict[str, Any]
    user_email: str = ""
    user_phone: str = ""
    payment_method: str | None = None
    coupon_code: str | None = None
    shipping_method_id: str | None = None
    shipping_amount: Any = None
    payment_proof: dict[str, Any] | None = None


@dataclass
class PricedCart:
    """Cart lines priced against the current catalog."""

    items: list[OrderItem]
    subtotal: Decimal
    tax: Decimal
    products: dict[str, Product] = field(default_factory=dict)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass
class ShippingSelection:
    """Shipping recorded on the order."""

    method_id: str | None
    method_name: str
    amount: Decimal


@dataclass
class VerifiedPayment:
    """Online payment accepted for an order."""

    proof: PaymentProof
    status: PaymentStatus

    @property
    def is_settled(self) -> bool:
        return self.status == PaymentStatus.PAID


# ============================================================================
# Orchestrator
# ============================================================================


class OrderFulfillmentOrchestrator:
    """Top-level checkout workflow."""

    def __init__(
        self,
        repositories: Repositories | None = None,
        ledger: InventoryLedger | None = None,
        dispatcher: NotificationDispatcher | None = None,
        gateway_factory: GatewayFactory | None = None,
        coupon_engine: CouponEngine | None = None,
        shipping_resolver: ShippingRateResolver | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            repositories: Repository bundle (uses global if not provided).
            ledger: Inventory ledger (uses global if not provided).
            dispatcher: Notification dispatcher (uses global if not provided).
            gateway_factory: Builds payment gateways (for testing).
            coupon_engine: Coupon rules.
            shipping_resolver: Shipping rules.
        """
        self.repos = repositories or get_repositories()
        self.ledger = ledger or get_inventory_ledger()
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.gateway_factory = gateway_factory or create_gateway
        self.coupons = coupon_engine or CouponEngine()
        self.shipping = shipping_resolver or ShippingRateResolver()

    # ------------------------------------------------------------------
    # Validation steps
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_payment_method(requested: Any, payment: PaymentConfig) -> PaymentMethod:
        """Normalize the requested method and check it is enabled.

        Raises:
            InvalidPaymentMethodError: None enabled, or method not enabled.
        """
        allowed = payment.enabled_methods()
        if not allowed:
            raise InvalidPaymentMethodError("No payment methods are enabled. Please contact support.")

        name = requested.strip().lower() if isinstance(requested, str) and requested.strip() else "cod"
        for method in allowed:
            if method.value == name:
                return method
        raise InvalidPaymentMethodError(
            "Invalid or disabled payment method. Allowed: " + ", ".join(m.value for m in allowed),
            details={"payment_method": name, "allowed": [m.value for m in allowed]},
        )

    @staticmethod
    def _tax_for_line(product: Product, line_total: Decimal, quantity: int, checkout: CheckoutConfig) -> Decimal:
        tax = product.tax
        if tax is not None and to_decimal(tax.value) > 0:
            if tax.tax_type == TaxType.FIXED:
                return round2(to_decimal(tax.value) * quantity)
            return round2(line_total * to_decimal(tax.value) / 100)
        return round2(line_total * checkout.default_tax_percentage / 100)

    async def price_cart(self, cart: Cart | None, checkout: CheckoutConfig) -> PricedCart:
        """Price cart lines and compute tax.

        Lines whose product is missing or inactive are dropped.

        Raises:
            EmptyCartError: No cart, no items, or no valid items.
        """
        if cart is None or cart.is_empty:
            raise EmptyCartError("Your cart is empty")

        products = await self.repos.products.get_many([i.product_id for i in cart.items])
        items: list[OrderItem] = []
        subtotal = Decimal("0")
        tax = Decimal("0")

        for cart_item in cart.items:
            product = products.get(cart_item.product_id)
            if product is None or not product.is_active:
                continue

            variation = product.find_variation(cart_item.variation_sku)
            if cart_item.price is not None:
                price = to_decimal(cart_item.price)
            elif variation is not None and variation.price is not None:
                price = to_decimal(variation.price)
            else:
                price = to_decimal(product.price)
            quantity = max(1, int(cart_item.quantity))
            line_total = price * quantity
            subtotal += line_total

            if checkout.tax_enabled:
                tax += self._tax_for_line(product, line_total, quantity, checkout)

            items.append(
                OrderItem(
                    product_id=product.id,
                    name=f"{product.name} - {variation.name}" if variation else product.name,
                    price=price,
                    quantity=quantity,
                    variation_sku=variation.sku if variation else None,
                    variation_name=variation.name if variation else "",
                )
            )

        if not items:
            raise EmptyCartError("No valid items in cart")

        return PricedCart(items=items, subtotal=round2(subtotal), tax=round2(tax), products=products)

    @staticmethod
    def check_stock(priced: PricedCart) -> None:
        """Ensure inventory-managed lines have enough stock.

        Quantities of lines sharing a stock counter are summed.

        Raises:
            InsufficientStockError: A counter is short.
        """
        wanted: dict[tuple[str, str | None], int] = defaultdict(int)
        names: dict[tuple[str, str | None], str] = {}
        for item in priced.items:
            key = (item.product_id, item.variation_sku)
            wanted[key] += item.quantity
            names[key] = item.name

        for (product_id, sku), quantity in wanted.items():
            product = priced.products[product_id]
            variation = product.find_variation(sku)
            managed = variation.is_inventory_managed if variation else product.is_inventory_managed
            if not managed:
                continue
            available = variation.stock if variation else product.stock
            if available < quantity:
                raise InsufficientStockError(
                    product_id,
                    available=available,
                    requested=quantity,
                    name=names[(product_id, sku)],
                )

    async def select_shipping(
        self,
        command: PlaceOrderCommand,
        address: ShippingAddress,
        priced: PricedCart,
    ) -> ShippingSelection:
        """Re-validate the client's shipping choice against a server quote.

        Raises:
            ShippingValidationError: Unknown method, wrong zone, or amount mismatch.
        """
        requested = max(Decimal("0"), to_decimal(command.shipping_amount))

        if not command.shipping_method_id:
            if requested > SHIPPING_TOLERANCE:
                raise ShippingValidationError("Shipping amount must be 0 when no method is selected.")
            return ShippingSelection(method_id=None, method_name=FREE_SHIPPING_NAME, amount=Decimal("0.00"))

        method = await self.repos.shipping.get_method(command.shipping_method_id)
        if method is None or not method.is_active:
            raise ShippingValidationError("Invalid or inactive shipping method.")
        zone = await self.repos.shipping.get_zone(method.zone_id)
        if zone is None or not zone.is_active:
            raise ShippingValidationError("Shipping zone not found or inactive.")

        zones = await self.repos.shipping.list_zones()
        matched = self.shipping.resolve_zone(
            zones, address.country or DEFAULT_SHIPPING_COUNTRY, address.state, address.zip
        )
        if matched is None or matched.id != zone.id:
            raise ShippingValidationError("Selected shipping method does not apply to this address.")

        expected = self.shipping.quote(method, priced.subtotal, priced.item_count)
        if abs(requested - expected) > SHIPPING_TOLERANCE:
            raise ShippingValidationError(
                "Shipping amount mismatch. Please refresh and try again.",
                details={"expected": str(expected), "requested": str(requested)},
            )
        return ShippingSelection(method_id=method.id, method_name=method.name or "Shipping", amount=expected)

    async def apply_coupon(self, code: str | None, subtotal: Decimal, checkout: CheckoutConfig) -> CouponApplication | None:
        """Apply a coupon if one is supplied, enabled and valid."""
        if not code or not code.strip() or not checkout.coupon_enabled:
            return None
        coupon = await self.repos.coupons.get_by_code(code)
        try:
            return self.coupons.validate(coupon, subtotal, utcnow(), code=code)
        except (CouponNotFoundError, CouponRejectedError) as e:
            logger.info("coupon_not_applied", code=code, reason=e.error_code)
            return None

    @staticmethod
    def compute_total(subtotal: Decimal, discount: Decimal, tax: Decimal, shipping: Decimal) -> Decimal:
        """``max(0, round2(subtotal - discount + tax + shipping))``."""
        return max(Decimal("0.00"), round2(subtotal - discount + tax + shipping))

    async def verify_payment(
        self,
        method: PaymentMethod,
        payment: PaymentConfig,
        raw_proof: dict[str, Any] | None,
        total: Decimal,
    ) -> VerifiedPayment | None:
        """Verify an online payment for the order total.

        A provider order may back at most one order. A Cashfree order that
        is still ``active`` is accepted as a pending payment.

        Returns:
            The verified payment, or None for COD.

        Raises:
            PaymentVerificationError: Proof missing, rejected or already used.
            GatewayError: Provider misconfigured or unreachable.
        """
        if method == PaymentMethod.COD:
            return None
        proof = PaymentProof.from_dict(raw_proof)
        if proof is None:
            raise PaymentVerificationError(
                "Payment proof is required for online payment.",
                details={"payment_method": method.value},
            )

        gateway = self.gateway_factory(method, payment)
        try:
            verification = await gateway.verify(proof, expected_amount=total)
        finally:
            await gateway.close()

        if not verification.valid:
            logger.warning(
                "payment_verification_failed",
                payment_method=method.value,
                provider_order_id=proof.order_id,
                reason=verification.message,
            )
            raise PaymentVerificationError(
                verification.message or "Payment verification failed.",
                details={"payment_method": method.value, "provider_order_id": proof.order_id},
            )

        existing = await self.repos.orders.get_by_payment_reference(proof.order_id, proof.payment_id)
        if existing is not None:
            logger.warning(
                "payment_already_used",
                payment_method=method.value,
                provider_order_id=proof.order_id,
                order_id=existing.id,
            )
            raise PaymentAlreadyUsedError(proof.order_id, proof.payment_id)

        if method == PaymentMethod.CASHFREE and verification.status != "paid":
            return VerifiedPayment(proof=proof, status=PaymentStatus.PENDING)
        return VerifiedPayment(proof=proof, status=PaymentStatus.PAID)

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def place_order(self, command: PlaceOrderCommand) -> Order:
        """Place an order from the user's cart.

        Args:
            command: Order placement request.

        Returns:
            The persisted order.

        Raises:
            ValidationError: Bad input (payment method, fields, empty cart,
                shipping choice).
            InsufficientStockError: Stock pre-check failed.
            GatewayError: Payment verification failed.
        """
        store: StoreSettings = await self.repos.settings.get()
        checkout = CheckoutConfig.from_settings(store)
        payment = PaymentConfig.from_settings(store)
        notification_config = NotificationConfig.from_settings(store)

        method = self.resolve_payment_method(command.payment_method, payment)
        address = ShippingAddress.from_dict(command.shipping_address)
        missing = checkout.missing_fields(address)
        if missing:
            raise MissingFieldsError(missing)

        cart = await self.repos.carts.get_by_user(command.user_id)
        priced = await self.price_cart(cart, checkout)
        self.check_stock(priced)

        shipping: ShippingSelection | None = None
        if checkout.shipping_enabled:
            shipping = await self.select_shipping(command, address, priced)

        applied = await self.apply_coupon(command.coupon_code, priced.subtotal, checkout)
        discount = applied.discount if applied else Decimal("0.00")

        total = self.compute_total(
            priced.subtotal,
            discount,
            priced.tax,
            shipping.amount if shipping else Decimal("0"),
        )

        verified = await self.verify_payment(method, payment, command.payment_proof, total)

        order = Order(
            id=new_id(),
            user_id=command.user_id,
            items=priced.items,
            subtotal=priced.subtotal,
            tax_amount=priced.tax,
            total=total,
            coupon_code=applied.coupon.code if applied else None,
            discount_amount=discount,
            shipping_method_id=shipping.method_id if shipping else None,
            shipping_method_name=shipping.method_name if shipping else None,
            shipping_amount=shipping.amount if shipping else None,
            shipping_address=address,
            payment_method=method,
            payment_status=verified.status if verified else PaymentStatus.COD,
            payment_gateway_order_id=verified.proof.order_id if verified else "",
            payment_gateway_payment_id=verified.proof.payment_id if verified else "",
            paid_at=utcnow() if verified and verified.is_settled else None,
        )

        await self._commit(order, applied)
        self._after_commit_notify(order, command, payment, notification_config)
        return order

    async def _commit(self, order: Order, applied: CouponApplication | None) -> None:
        """Write the order and advance dependent resources.

        Raises:
            Exception: Whatever the order insert raised, after compensation.
        """
        if applied is not None:
            await self.repos.coupons.increment_usage(applied.coupon.id, 1)

        try:
            await self.repos.orders.add(order)
        except Exception:
            logger.error("order_insert_failed", order_id=order.id, user_id=order.user_id)
            if applied is not None:
                try:
                    await self.repos.coupons.increment_usage(applied.coupon.id, -1)
                except Exception as e:
                    logger.error("coupon_compensation_failed", coupon_id=applied.coupon.id, error=str(e))
            raise

        logger.info(
            "order_placed",
            order_id=order.id,
            user_id=order.user_id,
            total=str(order.total),
            payment_method=order.payment_method.value,
            coupon_code=order.coupon_code,
        )

        try:
            await self.repos.carts.clear(order.user_id)
        except Exception as e:
            logger.error("cart_clear_failed", order_id=order.id, error=str(e))

        try:
            await self.ledger.deduct_for_order(order)
        except Exception as e:
            logger.error("inventory_deduction_failed", order_id=order.id, error=str(e))

    def _after_commit_notify(
        self,
        order: Order,
        command: PlaceOrderCommand,
        payment: PaymentConfig,
        config: NotificationConfig,
    ) -> None:
        try:
            self.dispatcher.dispatch(
                NotificationType.ORDER_PLACED,
                config,
                email=command.user_email or None,
                phone=order.shipping_address.phone or command.user_phone or None,
                data={
                    "orderId": order.id,
                    "total": str(order.total),
                    "currency": payment.currency,
                },
            )
        except Exception as e:
            logger.error("order_notification_failed", order_id=order.id, error=str(e))


# Global orchestrator instance
_orchestrator: OrderFulfillmentOrchestrator | None = None


def get_fulfillment_orchestrator() -> OrderFulfillmentOrchestrator:
    """Get orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = OrderFulfillmentOrchestrator()
    return _orchestrator


def reset_fulfillment_orchestrator() -> None:
    """Reset orchestrator (for testing)."""
    global _orchestrator
    _orchestrator = None
