"""Tests for order placement."""

import hashlib
import hmac
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from storefront.application.fulfillment_service import (
    OrderFulfillmentOrchestrator,
    PlaceOrderCommand,
)
from storefront.domain.base import utcnow
from storefront.domain.entities import (
    Cart,
    CartItem,
    Coupon,
    Product,
    ProductVariation,
    ShippingMethod,
    ShippingZone,
    TaxConfig,
)
from storefront.domain.exceptions import (
    EmptyCartError,
    InsufficientStockError,
    InvalidPaymentMethodError,
    MissingFieldsError,
    PaymentAlreadyUsedError,
    PaymentVerificationError,
    ShippingValidationError,
)
from storefront.domain.state_machines import OrderStatus
from storefront.domain.store_config import PaymentConfig, StoreSettings
from storefront.domain.value_objects import (
    DiscountType,
    InventoryMovementType,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    RateType,
    StockManagement,
    TaxType,
)
from storefront.infrastructure.payment_gateways import create_gateway
from storefront.infrastructure.repositories import Repositories

USER_ID = "user-1"
RAZORPAY_SECRET = "rzp_secret"


async def setup_store(
    repos: Repositories,
    products: list[Product],
    lines: list[tuple[str, int]],
    **store: object,
) -> None:
    """Save settings, products and a cart of ``(product_id, quantity)`` lines."""
    await repos.settings.save(StoreSettings(**store))
    for product in products:
        await repos.products.save(product)
    await repos.carts.save(
        Cart.create(USER_ID, items=[CartItem(product_id=pid, quantity=qty) for pid, qty in lines])
    )


def product(product_id: str, price: str, stock: int = 100, **kwargs) -> Product:
    kwargs.setdefault("name", product_id.title())
    return Product(id=product_id, price=Decimal(price), stock=stock, **kwargs)


def command(address: dict, **kwargs) -> PlaceOrderCommand:
    return PlaceOrderCommand(user_id=USER_ID, shipping_address=address, **kwargs)


def razorpay_signature(order_id: str, payment_id: str) -> str:
    return hmac.new(RAZORPAY_SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def gateway_factory(handler):
    return lambda method, config: create_gateway(method, config, transport=httpx.MockTransport(handler))


RAZORPAY_ONLY = {"cod": {"enabled": False}, "razorpay": {"enabled": True, "keyId": "rzp_test_key", "keySecret": RAZORPAY_SECRET}}


# ============================================================================
# Pricing and coupons
# ============================================================================


class TestTotals:
    """Subtotal, discount, tax and total."""

    @pytest.mark.asyncio
    async def test_percentage_coupon_with_cap(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "1000")], [("p1", 1)], coupon_enabled=True)
        await repos.coupons.add(
            Coupon.create("SAVE20", discount_value=Decimal("20"), max_discount=Decimal("150"))
        )

        order = await orchestrator.place_order(command(shipping_address, coupon_code="save20"))

        assert order.subtotal == Decimal("1000.00")
        assert order.discount_amount == Decimal("150.00")
        assert order.total == Decimal("850.00")
        assert order.coupon_code == "SAVE20"
        coupon = await repos.coupons.get_by_code("SAVE20")
        assert coupon.used_count == 1

    @pytest.mark.asyncio
    async def test_fixed_coupon_larger_than_subtotal(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], coupon_enabled=True)
        await repos.coupons.add(
            Coupon.create("BIG", discount_type=DiscountType.FIXED, discount_value=Decimal("700"))
        )

        order = await orchestrator.place_order(command(shipping_address, coupon_code="BIG"))

        assert order.discount_amount == Decimal("500.00")
        assert order.total == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_expired_coupon_is_ignored(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "400")], [("p1", 1)], coupon_enabled=True)
        expired = Coupon.create("OLD", discount_value=Decimal("10"), end_date=utcnow() - timedelta(days=1))
        await repos.coupons.add(expired)

        order = await orchestrator.place_order(command(shipping_address, coupon_code="OLD"))

        assert order.total == Decimal("400.00")
        assert order.coupon_code is None
        assert order.discount_amount == Decimal("0")
        assert expired.used_count == 0

    @pytest.mark.asyncio
    async def test_coupon_ignored_when_feature_disabled(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "400")], [("p1", 1)], coupon_enabled=False)
        await repos.coupons.add(Coupon.create("SAVE", discount_value=Decimal("10")))

        order = await orchestrator.place_order(command(shipping_address, coupon_code="SAVE"))

        assert order.coupon_code is None
        assert order.total == Decimal("400.00")

    @pytest.mark.asyncio
    async def test_usage_limit_reached_through_checkout(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 1)], coupon_enabled=True)
        coupon = Coupon.create("TWICE", discount_value=Decimal("10"), usage_limit=2)
        await repos.coupons.add(coupon)

        placed = []
        for _ in range(3):
            await repos.carts.save(Cart.create(USER_ID, items=[CartItem(product_id="p1", quantity=1)]))
            order = await orchestrator.place_order(command(shipping_address, coupon_code="twice"))
            placed.append((order.coupon_code, order.total))

        assert placed == [
            ("TWICE", Decimal("90.00")),
            ("TWICE", Decimal("90.00")),
            (None, Decimal("100.00")),
        ]
        assert coupon.used_count == 2

    @pytest.mark.asyncio
    async def test_default_and_product_tax(self, repos, orchestrator, shipping_address) -> None:
        products = [
            product("shirt", "100"),
            product("book", "50", tax=TaxConfig(tax_type=TaxType.FIXED, value=Decimal("5"))),
            product("mug", "200", tax=TaxConfig(tax_type=TaxType.PERCENTAGE, value=Decimal("12"))),
        ]
        await setup_store(
            repos,
            products,
            [("shirt", 2), ("book", 2), ("mug", 1)],
            tax_enabled=True,
            default_tax_percentage=Decimal("18"),
        )

        order = await orchestrator.place_order(command(shipping_address))

        # 18% of 200 + 5 x 2 + 12% of 200
        assert order.tax_amount == Decimal("70.00")
        assert order.subtotal == Decimal("500.00")
        assert order.total == Decimal("570.00")

    @pytest.mark.asyncio
    async def test_variation_price_and_name(self, repos, orchestrator, shipping_address) -> None:
        shirt = product(
            "shirt",
            "499",
            name="T-Shirt",
            variations=[ProductVariation(name="Large", sku="TS-L", price=Decimal("549"), stock=5)],
        )
        await repos.settings.save(StoreSettings())
        await repos.products.save(shirt)
        await repos.carts.save(
            Cart.create(USER_ID, items=[CartItem(product_id="shirt", quantity=2, variation_sku="TS-L")])
        )

        order = await orchestrator.place_order(command(shipping_address))

        item = order.items[0]
        assert item.name == "T-Shirt - Large"
        assert item.price == Decimal("549")
        assert item.variation_sku == "TS-L"
        stored = await repos.products.get("shirt")
        assert stored.variations[0].stock == 3
        assert stored.stock == 100


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    """Failures raised before any write."""

    @pytest.mark.asyncio
    async def test_missing_fields_listed_together(self, repos, orchestrator) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 1)])

        with pytest.raises(MissingFieldsError) as exc_info:
            await orchestrator.place_order(command({"state": "MH"}))

        assert exc_info.value.fields == ["name", "address", "city", "zip", "phone"]

    @pytest.mark.asyncio
    async def test_disabled_payment_method_rejected(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100", stock=10)], [("p1", 1)])

        with pytest.raises(InvalidPaymentMethodError, match="Allowed: cod"):
            await orchestrator.place_order(command(shipping_address, payment_method="razorpay"))

        assert await repos.orders.list_by_user(USER_ID) == []
        assert (await repos.products.get("p1")).stock == 10
        assert len((await repos.carts.get_by_user(USER_ID)).items) == 1

    @pytest.mark.asyncio
    async def test_no_payment_methods_enabled(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 1)], payment={"cod": {"enabled": False}})

        with pytest.raises(InvalidPaymentMethodError, match="No payment methods are enabled"):
            await orchestrator.place_order(command(shipping_address))

    @pytest.mark.asyncio
    async def test_empty_cart(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [], [])

        with pytest.raises(EmptyCartError, match="Your cart is empty"):
            await orchestrator.place_order(command(shipping_address))

    @pytest.mark.asyncio
    async def test_deleted_products_dropped(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("gone", 1), ("p1", 2)])

        order = await orchestrator.place_order(command(shipping_address))

        assert [item.product_id for item in order.items] == ["p1"]
        assert order.subtotal == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_only_deleted_products(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("off", "10", is_active=False)], [("gone", 1), ("off", 1)])

        with pytest.raises(EmptyCartError, match="No valid items in cart"):
            await orchestrator.place_order(command(shipping_address))

    @pytest.mark.asyncio
    async def test_insufficient_stock(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100", stock=2)], [("p1", 3)])

        with pytest.raises(InsufficientStockError) as exc_info:
            await orchestrator.place_order(command(shipping_address))

        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        assert await repos.orders.list_by_user(USER_ID) == []

    @pytest.mark.asyncio
    async def test_stock_check_sums_lines_for_same_product(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100", stock=3)], [("p1", 2), ("p1", 2)])

        with pytest.raises(InsufficientStockError):
            await orchestrator.place_order(command(shipping_address))

    @pytest.mark.asyncio
    async def test_unmanaged_stock_not_checked(self, repos, orchestrator, shipping_address) -> None:
        ebook = product("ebook", "99", stock=0, stock_management=StockManagement.NONE)
        await setup_store(repos, [ebook], [("ebook", 5)])

        order = await orchestrator.place_order(command(shipping_address))

        assert order.item_count == 5
        assert await repos.inventory.list_for_order(order.id) == []


# ============================================================================
# Shipping
# ============================================================================


async def setup_shipping(repos: Repositories) -> None:
    """Mumbai zone with per-item 20, free from 500."""
    await repos.shipping.add_zone(ShippingZone(id="z-mum", name="Mumbai", zip_prefixes=["40"]))
    await repos.shipping.add_zone(ShippingZone(id="z-all", name="Everywhere", sort_order=10))
    await repos.shipping.add_method(
        ShippingMethod(
            id="m-std",
            zone_id="z-mum",
            name="Standard",
            rate_type=RateType.PER_ITEM,
            rate_value=Decimal("20"),
            min_order_for_free=Decimal("500"),
        )
    )
    await repos.shipping.add_method(
        ShippingMethod(id="m-far", zone_id="z-all", name="Far", rate_value=Decimal("99"))
    )


class TestShipping:
    """Server-side shipping re-validation."""

    @pytest.mark.asyncio
    async def test_quoted_amount_accepted(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 4)], shipping_enabled=True)
        await setup_shipping(repos)

        order = await orchestrator.place_order(
            command(shipping_address, shipping_method_id="m-std", shipping_amount="80.01")
        )

        assert order.shipping_method_id == "m-std"
        assert order.shipping_method_name == "Standard"
        assert order.shipping_amount == Decimal("80.00")
        assert order.total == Decimal("180.00")

    @pytest.mark.asyncio
    async def test_free_over_threshold(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "150")], [("p1", 4)], shipping_enabled=True)
        await setup_shipping(repos)

        order = await orchestrator.place_order(
            command(shipping_address, shipping_method_id="m-std", shipping_amount=0)
        )

        assert order.shipping_amount == Decimal("0.00")
        assert order.total == Decimal("600.00")

    @pytest.mark.asyncio
    async def test_tampered_amount_rejected(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 4)], shipping_enabled=True)
        await setup_shipping(repos)

        with pytest.raises(ShippingValidationError, match="Shipping amount mismatch"):
            await orchestrator.place_order(
                command(shipping_address, shipping_method_id="m-std", shipping_amount=0)
            )
        assert await repos.orders.list_by_user(USER_ID) == []

    @pytest.mark.asyncio
    async def test_method_from_other_zone_rejected(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 4)], shipping_enabled=True)
        await setup_shipping(repos)

        with pytest.raises(ShippingValidationError, match="does not apply to this address"):
            await orchestrator.place_order(
                command(shipping_address, shipping_method_id="m-far", shipping_amount=99)
            )

    @pytest.mark.asyncio
    async def test_unknown_method_rejected(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 1)], shipping_enabled=True)
        await setup_shipping(repos)

        with pytest.raises(ShippingValidationError, match="Invalid or inactive shipping method"):
            await orchestrator.place_order(command(shipping_address, shipping_method_id="nope"))

    @pytest.mark.asyncio
    async def test_amount_without_method_rejected(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 1)], shipping_enabled=True)

        with pytest.raises(ShippingValidationError, match="must be 0 when no method"):
            await orchestrator.place_order(command(shipping_address, shipping_amount=5))

    @pytest.mark.asyncio
    async def test_no_method_records_free_shipping(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 1)], shipping_enabled=True)

        order = await orchestrator.place_order(command(shipping_address))

        assert order.shipping_method_name == "Free Shipping"
        assert order.shipping_amount == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_shipping_disabled_leaves_fields_empty(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "25")], [("p1", 1)])

        order = await orchestrator.place_order(
            command(shipping_address, shipping_method_id="m-std", shipping_amount=80)
        )

        assert order.shipping_amount is None
        assert order.shipping_method_id is None
        assert order.total == Decimal("25.00")


# ============================================================================
# Online payment
# ============================================================================


class TestOnlinePayment:
    """Razorpay and Cashfree proof verification."""

    @pytest.mark.asyncio
    async def test_valid_razorpay_payment(self, repos, ledger, dispatcher, shipping_address) -> None:
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=RAZORPAY_ONLY)
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json={"id": "order_rzp_1", "amount": 50000, "status": "paid"})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )
        proof = {
            "razorpayOrderId": "order_rzp_1",
            "razorpayPaymentId": "pay_1",
            "razorpaySignature": razorpay_signature("order_rzp_1", "pay_1"),
        }

        order = await orchestrator.place_order(
            command(shipping_address, payment_method="Razorpay", payment_proof=proof)
        )

        assert seen == ["/v1/orders/order_rzp_1"]
        assert order.payment_method == PaymentMethod.RAZORPAY
        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_gateway_order_id == "order_rzp_1"
        assert order.payment_gateway_payment_id == "pay_1"
        assert order.paid_at is not None

    @pytest.mark.asyncio
    async def test_invalid_razorpay_signature(self, repos, ledger, dispatcher, shipping_address) -> None:
        await setup_store(repos, [product("p1", "500", stock=4)], [("p1", 1)], payment=RAZORPAY_ONLY)
        handler = MagicMock(return_value=httpx.Response(200, json={}))
        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )
        proof = {"razorpayOrderId": "order_rzp_1", "razorpayPaymentId": "pay_1", "razorpaySignature": "bad"}

        with pytest.raises(PaymentVerificationError, match="Invalid signature"):
            await orchestrator.place_order(
                command(shipping_address, payment_method="razorpay", payment_proof=proof)
            )

        handler.assert_not_called()
        assert await repos.orders.list_by_user(USER_ID) == []
        assert (await repos.products.get("p1")).stock == 4
        dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_razorpay_amount_mismatch(self, repos, ledger, dispatcher, shipping_address) -> None:
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=RAZORPAY_ONLY)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "order_rzp_1", "amount": 100})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )
        proof = {
            "razorpayOrderId": "order_rzp_1",
            "razorpayPaymentId": "pay_1",
            "razorpaySignature": razorpay_signature("order_rzp_1", "pay_1"),
        }

        with pytest.raises(PaymentVerificationError, match="Order amount mismatch"):
            await orchestrator.place_order(
                command(shipping_address, payment_method="razorpay", payment_proof=proof)
            )

    @pytest.mark.asyncio
    async def test_online_payment_requires_proof(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=RAZORPAY_ONLY)

        with pytest.raises(PaymentVerificationError, match="Payment proof is required"):
            await orchestrator.place_order(command(shipping_address, payment_method="razorpay"))

    @pytest.mark.asyncio
    async def test_paid_cashfree_order(self, repos, ledger, dispatcher, shipping_address) -> None:
        payment = {"cashfree": {"enabled": True, "appId": "cf_app", "secretKey": "cf_secret"}}
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=payment)

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["x-client-id"] == "cf_app"
            return httpx.Response(200, json={"order_status": "PAID", "order_amount": 500})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )

        order = await orchestrator.place_order(
            command(shipping_address, payment_method="cashfree", payment_proof={"orderId": "cf_order_9"})
        )

        assert order.payment_status == PaymentStatus.PAID
        assert order.payment_gateway_order_id == "cf_order_9"

    @pytest.mark.asyncio
    async def test_unpaid_cashfree_order(self, repos, ledger, dispatcher, shipping_address) -> None:
        payment = {"cashfree": {"enabled": True, "appId": "cf_app", "secretKey": "cf_secret"}}
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=payment)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"order_status": "EXPIRED"})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )

        with pytest.raises(PaymentVerificationError, match="status: expired"):
            await orchestrator.place_order(
                command(shipping_address, payment_method="cashfree", payment_proof={"orderId": "cf_order_9"})
            )

    @pytest.mark.asyncio
    async def test_cashfree_amount_below_total(self, repos, ledger, dispatcher, shipping_address) -> None:
        payment = {"cashfree": {"enabled": True, "appId": "cf_app", "secretKey": "cf_secret"}}
        await setup_store(repos, [product("p1", "10000", stock=3)], [("p1", 1)], payment=payment)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"order_status": "ACTIVE", "order_amount": 1})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )

        with pytest.raises(PaymentVerificationError, match="Order amount mismatch"):
            await orchestrator.place_order(
                command(shipping_address, payment_method="cashfree", payment_proof={"orderId": "cf_order_9"})
            )

        assert await repos.orders.list_by_user(USER_ID) == []
        assert (await repos.products.get("p1")).stock == 3

    @pytest.mark.asyncio
    async def test_cashfree_amount_missing(self, repos, ledger, dispatcher, shipping_address) -> None:
        payment = {"cashfree": {"enabled": True, "appId": "cf_app", "secretKey": "cf_secret"}}
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=payment)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"order_status": "PAID"})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )

        with pytest.raises(PaymentVerificationError, match="Order amount mismatch"):
            await orchestrator.place_order(
                command(shipping_address, payment_method="cashfree", payment_proof={"orderId": "cf_order_9"})
            )

    @pytest.mark.asyncio
    async def test_active_cashfree_order_is_pending(self, repos, ledger, dispatcher, shipping_address) -> None:
        """A session that was opened but not paid does not mark the order paid."""
        payment = {"cashfree": {"enabled": True, "appId": "cf_app", "secretKey": "cf_secret"}}
        await setup_store(repos, [product("p1", "500")], [("p1", 1)], payment=payment)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"order_status": "ACTIVE", "order_amount": 500})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )

        order = await orchestrator.place_order(
            command(shipping_address, payment_method="cashfree", payment_proof={"orderId": "cf_order_9"})
        )

        assert order.payment_status == PaymentStatus.PENDING
        assert order.paid_at is None
        assert order.payment_gateway_order_id == "cf_order_9"

    @pytest.mark.asyncio
    async def test_razorpay_payment_cannot_settle_two_orders(self, repos, ledger, dispatcher, shipping_address) -> None:
        await setup_store(repos, [product("p1", "500", stock=10)], [("p1", 1)], payment=RAZORPAY_ONLY)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "order_rzp_1", "amount": 50000, "status": "paid"})

        orchestrator = OrderFulfillmentOrchestrator(
            repositories=repos, ledger=ledger, dispatcher=dispatcher, gateway_factory=gateway_factory(handler)
        )
        proof = {
            "razorpayOrderId": "order_rzp_1",
            "razorpayPaymentId": "pay_1",
            "razorpaySignature": razorpay_signature("order_rzp_1", "pay_1"),
        }
        first = await orchestrator.place_order(
            command(shipping_address, payment_method="razorpay", payment_proof=proof)
        )
        await repos.carts.save(Cart.create(USER_ID, items=[CartItem(product_id="p1", quantity=1)]))

        with pytest.raises(PaymentAlreadyUsedError, match="already used"):
            await orchestrator.place_order(
                command(shipping_address, payment_method="razorpay", payment_proof=proof)
            )

        assert [o.id for o in await repos.orders.list_by_user(USER_ID)] == [first.id]
        assert (await repos.products.get("p1")).stock == 9
        assert len((await repos.carts.get_by_user(USER_ID)).items) == 1


# ============================================================================
# Commit
# ============================================================================


class TestCommit:
    """Writes performed after validation."""

    @pytest.mark.asyncio
    async def test_cod_order_persisted_pending(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 1)])

        order = await orchestrator.place_order(command(shipping_address))

        assert order.status == OrderStatus.PENDING
        assert order.payment_method == PaymentMethod.COD
        assert order.payment_status == PaymentStatus.COD
        assert await repos.orders.get(order.id) is order
        assert order.shipping_address.name == "Asha Rao"

    @pytest.mark.asyncio
    async def test_stock_deducted_with_ledger_entry(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100", stock=10)], [("p1", 3)])

        order = await orchestrator.place_order(command(shipping_address))

        assert (await repos.products.get("p1")).stock == 7
        entries = await repos.inventory.list_for_order(order.id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.type == InventoryMovementType.OUT
        assert (entry.quantity, entry.previous_stock, entry.new_stock) == (-3, 10, 7)
        assert entry.reason == "Order"

    @pytest.mark.asyncio
    async def test_cart_cleared(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 1)])

        await orchestrator.place_order(command(shipping_address))

        assert (await repos.carts.get_by_user(USER_ID)).is_empty

    @pytest.mark.asyncio
    async def test_order_placed_notification(self, repos, orchestrator, dispatcher, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 2)])

        order = await orchestrator.place_order(command(shipping_address, user_email="asha@example.com"))

        dispatcher.dispatch.assert_called_once()
        args, kwargs = dispatcher.dispatch.call_args
        assert args[0] == NotificationType.ORDER_PLACED
        assert kwargs["email"] == "asha@example.com"
        assert kwargs["phone"] == "+919800000001"
        assert kwargs["data"] == {"orderId": order.id, "total": "200.00", "currency": "INR"}

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_order(self, repos, orchestrator, dispatcher, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100")], [("p1", 1)])
        dispatcher.dispatch.side_effect = RuntimeError("smtp down")

        order = await orchestrator.place_order(command(shipping_address))

        assert await repos.orders.get(order.id) is order

    @pytest.mark.asyncio
    async def test_failed_insert_releases_coupon(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100", stock=5)], [("p1", 1)], coupon_enabled=True)
        coupon = Coupon.create("SAVE", discount_value=Decimal("10"))
        await repos.coupons.add(coupon)
        repos.orders.add = AsyncMock(side_effect=RuntimeError("insert failed"))

        with pytest.raises(RuntimeError, match="insert failed"):
            await orchestrator.place_order(command(shipping_address, coupon_code="SAVE"))

        assert coupon.used_count == 0
        assert (await repos.products.get("p1")).stock == 5
        assert len((await repos.carts.get_by_user(USER_ID)).items) == 1

    @pytest.mark.asyncio
    async def test_cart_clear_failure_is_isolated(self, repos, orchestrator, shipping_address) -> None:
        await setup_store(repos, [product("p1", "100", stock=5)], [("p1", 1)])
        repos.carts.clear = AsyncMock(side_effect=RuntimeError("clear failed"))

        order = await orchestrator.place_order(command(shipping_address))

        assert await repos.orders.get(order.id) is order
        assert (await repos.products.get("p1")).stock == 4


def test_compute_total_never_negative() -> None:
    total = OrderFulfillmentOrchestrator.compute_total(
        Decimal("100"), Decimal("150"), Decimal("0"), Decimal("0")
    )
    assert total == Decimal("0.00")


def test_payment_method_defaults_to_cod() -> None:
    assert OrderFulfillmentOrchestrator.resolve_payment_method(None, PaymentConfig()) == PaymentMethod.COD
    assert OrderFulfillmentOrchestrator.resolve_payment_method("  ", PaymentConfig()) == PaymentMethod.COD
