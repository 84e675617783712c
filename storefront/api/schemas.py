"""API schemas for the storefront API.

Pydantic models for request/response validation and serialization.
JSON field names are camelCase; amounts are major-unit numbers.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.domain.entities import InventoryEntry, Order, Product
from storefront.domain.shipping import ShippingOptions

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Common Schemas
# ============================================================================


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope."""

    success: bool = Field(default=True, description="Always true")
    data: T = Field(..., description="Response payload")
    message: str | None = Field(default=None, description="Optional human-readable note")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    success: bool = Field(default=False, description="Always false")
    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error details")
    request_id: str | None = Field(default=None, description="Request ID for correlation")


# ============================================================================
# Order Schemas
# ============================================================================


class CustomFieldSchema(ApiModel):
    """Free-form checkout field."""

    key: str = ""
    label: str = ""
    value: str = ""


class ShippingAddressSchema(ApiModel):
    """Shipping address as entered at checkout.

    Every field is optional here; required fields are enforced by the
    store's checkout configuration.
    """

    name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    phone: str | None = None
    country: str | None = None
    custom_fields: list[CustomFieldSchema] = Field(default_factory=list)


class PlaceOrderRequest(ApiModel):
    """Request to place an order from the caller's cart."""

    shipping_address: ShippingAddressSchema = Field(default_factory=ShippingAddressSchema)
    payment_method: str | None = Field(default=None, description="cod, razorpay or cashfree")
    coupon_code: str | None = None
    shipping_method_id: str | None = None
    shipping_amount: Decimal | None = None
    payment_proof: dict[str, Any] | None = Field(
        default=None,
        description="Provider order id plus, for Razorpay, payment id and signature",
    )


class OrderItemSchema(ApiModel):
    """Purchased line."""

    product_id: str
    name: str
    price: float
    quantity: int
    variation_sku: str | None = None
    variation_name: str = ""


class OrderResponse(ApiModel):
    """Order details."""

    id: str
    user_id: str
    items: list[OrderItemSchema]
    subtotal: float
    tax_amount: float
    discount_amount: float | None = None
    total: float
    coupon_code: str | None = None
    shipping_method_id: str | None = None
    shipping_method_name: str | None = None
    shipping_amount: float | None = None
    shipping_address: dict[str, Any]
    status: str
    payment_method: str
    payment_status: str
    payment_gateway_order_id: str = ""
    payment_gateway_payment_id: str = ""
    paid_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user_id=order.user_id,
            items=[
                OrderItemSchema(
                    product_id=item.product_id,
                    name=item.name,
                    price=float(item.price),
                    quantity=item.quantity,
                    variation_sku=item.variation_sku,
                    variation_name=item.variation_name,
                )
                for item in order.items
            ],
            subtotal=float(order.subtotal),
            tax_amount=float(order.tax_amount),
            discount_amount=None if order.coupon_code is None else float(order.discount_amount),
            total=float(order.total),
            coupon_code=order.coupon_code,
            shipping_method_id=order.shipping_method_id,
            shipping_method_name=order.shipping_method_name,
            shipping_amount=None if order.shipping_amount is None else float(order.shipping_amount),
            shipping_address=order.shipping_address.to_dict(),
            status=order.status.value,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            payment_gateway_order_id=order.payment_gateway_order_id,
            payment_gateway_payment_id=order.payment_gateway_payment_id,
            paid_at=order.paid_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderStatusUpdateRequest(ApiModel):
    """Admin request to change an order's status."""

    status: str = Field(..., description="pending, confirmed, shipped, delivered or cancelled")


# ============================================================================
# Payment Schemas
# ============================================================================


class CreateRazorpayOrderRequest(ApiModel):
    amount: Decimal | None = Field(default=None, description="Amount in major units (>= 1)")
    currency: str | None = None
    receipt: str | None = None


class RazorpayOrderResponse(ApiModel):
    order_id: str
    key_id: str
    amount_in_paise: int


class CreateCashfreeSessionRequest(ApiModel):
    order_id: str | None = Field(default=None, description="Caller-chosen unique order id")
    amount: Decimal | None = None
    currency: str | None = None
    customer_details: dict[str, Any] | None = None
    return_url: str | None = None


class CashfreeSessionResponse(ApiModel):
    order_id: str
    payment_session_id: str


class VerifyRazorpayRequest(ApiModel):
    razorpay_order_id: str = ""
    razorpay_payment_id: str = ""
    signature: str = ""
    amount: Decimal | None = Field(default=None, description="Expected amount in major units")


class VerifyRazorpayResponse(ApiModel):
    valid: bool
    message: str | None = None


class VerifyCashfreeRequest(ApiModel):
    order_id: str | None = None


class VerifyCashfreeResponse(ApiModel):
    paid: bool
    order_status: str
    amount: float | None = None


# ============================================================================
# Shipping Schemas
# ============================================================================


class ShippingMethodOption(ApiModel):
    """A priced shipping method for the address."""

    id: str = Field(..., alias="_id")
    name: str
    description: str = ""
    rate_type: str
    rate_value: float
    min_order_for_free: float
    estimated_days_min: int | None = None
    estimated_days_max: int | None = None
    amount: float


class ShippingOptionsResponse(ApiModel):
    """Shipping choices for an address."""

    enabled: bool
    zone_matched: bool | None = None
    zone_id: str | None = None
    zone_name: str | None = None
    methods: list[ShippingMethodOption] = Field(default_factory=list)
    use_zero_shipping: bool | None = None
    message: str | None = None

    @classmethod
    def from_options(cls, options: ShippingOptions) -> "ShippingOptionsResponse":
        if not options.enabled:
            return cls(enabled=False)
        return cls(
            enabled=True,
            zone_matched=options.zone_matched,
            zone_id=options.zone.id if options.zone else None,
            zone_name=options.zone.name if options.zone else None,
            methods=[
                ShippingMethodOption(
                    id=q.method.id,
                    name=q.method.name,
                    description=q.method.description,
                    rate_type=q.method.rate_type.value,
                    rate_value=float(q.method.rate_value),
                    min_order_for_free=float(q.method.min_order_for_free),
                    estimated_days_min=q.method.estimated_days_min,
                    estimated_days_max=q.method.estimated_days_max,
                    amount=float(q.amount),
                )
                for q in options.quotes
            ],
            use_zero_shipping=options.use_zero_shipping or None,
            message=options.message,
        )


# ============================================================================
# Coupon Schemas
# ============================================================================


class CouponValidateRequest(ApiModel):
    code: str | None = None
    order_total: Decimal | None = None


class CouponValidateResponse(ApiModel):
    code: str
    discount_type: str
    discount_value: float
    discount: float


# ============================================================================
# Inventory Schemas
# ============================================================================


class AddStockRequest(ApiModel):
    product_id: str
    quantity: int = Field(default=1, description="Units received (at least 1)")
    sku: str | None = None
    reason: str = ""
    notes: str = ""


class AdjustStockRequest(ApiModel):
    product_id: str
    quantity: int = Field(..., description="Signed non-zero delta")
    reason: str = ""
    notes: str = ""


class InventoryEntrySchema(ApiModel):
    """Ledger entry."""

    id: str
    product_id: str
    sku: str
    quantity: int
    type: str
    reason: str
    previous_stock: int
    new_stock: int
    reference_order_id: str | None = None
    notes: str = ""
    created_at: datetime
    product_name: str | None = None

    @classmethod
    def from_entry(cls, entry: InventoryEntry, product_name: str | None = None) -> "InventoryEntrySchema":
        return cls(
            id=entry.id,
            product_id=entry.product_id,
            product_name=product_name,
            sku=entry.sku,
            quantity=entry.quantity,
            type=entry.type.value,
            reason=entry.reason,
            previous_stock=entry.previous_stock,
            new_stock=entry.new_stock,
            reference_order_id=entry.reference_order_id,
            notes=entry.notes,
            created_at=entry.created_at,
        )


class ProductStockSchema(ApiModel):
    """Product stock balances."""

    id: str = Field(..., alias="_id")
    name: str
    stock: int
    variations: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_product(cls, product: Product) -> "ProductStockSchema":
        return cls(
            id=product.id,
            name=product.name,
            stock=product.stock,
            variations=[{"name": v.name, "sku": v.sku, "stock": v.stock} for v in product.variations],
        )


class StockAdjustmentResponse(ApiModel):
    product: ProductStockSchema
    new_stock: int
    entry: InventoryEntrySchema


class InventoryHistoryResponse(ApiModel):
    product: ProductStockSchema
    movements: list[InventoryEntrySchema]


class PaginationSchema(ApiModel):
    page: int
    limit: int
    total: int
    pages: int


class InventoryListResponse(ApiModel):
    """Ledger entries across products."""

    movements: list[InventoryEntrySchema]
    pagination: PaginationSchema


# ============================================================================
# Cron Schemas
# ============================================================================


class RecoveryRunResponse(ApiModel):
    sent: int
    skipped: int
    errors: list[str]
