"""Domain layer - Entities, value objects, state machines, pure services.

This module exports the core domain building blocks:

- **Entities**: Objects with identity (Cart, Order, Coupon, Product)
- **Value Objects**: Immutable objects compared by value (ShippingAddress)
- **State Machines**: Deterministic order status transitions
- **Store Config**: Immutable per-request settings snapshots
- **Pure services**: CouponEngine, ShippingRateResolver
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from storefront.domain import Coupon, CouponEngine, DiscountType

    coupon = Coupon.create("save20", discount_type=DiscountType.PERCENTAGE,
                           discount_value=Decimal("20"), max_discount=Decimal("150"))
    applied = CouponEngine().validate(coupon, Decimal("1000"), utcnow())
    print(applied.discount)  # 150.00
"""

# Base classes
from storefront.domain.base import AggregateRoot, Entity, ValueObject, utcnow

# Pure services
from storefront.domain.coupons import CouponApplication, CouponEngine

# Entities
from storefront.domain.entities import (
    Cart,
    CartItem,
    Coupon,
    Customer,
    InventoryEntry,
    Order,
    OrderItem,
    Product,
    ProductVariation,
    ShippingMethod,
    ShippingZone,
    TaxConfig,
)

# Exceptions
from storefront.domain.exceptions import (
    ConflictError,
    CouponBelowMinimumError,
    CouponExpiredError,
    CouponLimitReachedError,
    CouponNotFoundError,
    CouponNotYetActiveError,
    CouponRejectedError,
    DomainError,
    DuplicateCouponCodeError,
    EmptyCartError,
    GatewayError,
    GatewayNotConfiguredError,
    InsufficientStockError,
    InternalError,
    InvalidPaymentMethodError,
    InvalidSkuError,
    InvalidStateTransitionError,
    MissingFieldsError,
    NotFoundError,
    OrderNotFoundError,
    PaymentAlreadyUsedError,
    PaymentVerificationError,
    ProductNotFoundError,
    ShippingValidationError,
    ValidationError,
)
from storefront.domain.shipping import ShippingOptions, ShippingQuote, ShippingRateResolver

# State Machines
from storefront.domain.state_machines import OrderStatus

# Store settings snapshots
from storefront.domain.store_config import (
    CheckoutConfig,
    NotificationConfig,
    PaymentConfig,
    StoreSettings,
)

# Value Objects
from storefront.domain.value_objects import (
    CustomField,
    DiscountType,
    InventoryMovementType,
    NotificationChannel,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    RateType,
    ShippingAddress,
    StockManagement,
    TaxType,
    round2,
    to_decimal,
    to_minor_units,
)

__all__ = [
    # Base classes
    "AggregateRoot",
    "Entity",
    "ValueObject",
    "utcnow",
    # Entities
    "Cart",
    "CartItem",
    "Coupon",
    "Customer",
    "InventoryEntry",
    "Order",
    "OrderItem",
    "Product",
    "ProductVariation",
    "ShippingMethod",
    "ShippingZone",
    "TaxConfig",
    # Value Objects
    "CustomField",
    "DiscountType",
    "InventoryMovementType",
    "NotificationChannel",
    "NotificationType",
    "PaymentMethod",
    "PaymentStatus",
    "RateType",
    "ShippingAddress",
    "StockManagement",
    "TaxType",
    "round2",
    "to_decimal",
    "to_minor_units",
    # State Machines
    "OrderStatus",
    # Store Config
    "CheckoutConfig",
    "NotificationConfig",
    "PaymentConfig",
    "StoreSettings",
    # Pure services
    "CouponApplication",
    "CouponEngine",
    "ShippingOptions",
    "ShippingQuote",
    "ShippingRateResolver",
    # Exceptions
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "GatewayError",
    "InternalError",
    "MissingFieldsError",
    "EmptyCartError",
    "InvalidPaymentMethodError",
    "ShippingValidationError",
    "CouponNotFoundError",
    "CouponRejectedError",
    "CouponNotYetActiveError",
    "CouponExpiredError",
    "CouponLimitReachedError",
    "CouponBelowMinimumError",
    "DuplicateCouponCodeError",
    "ProductNotFoundError",
    "InvalidSkuError",
    "InsufficientStockError",
    "OrderNotFoundError",
    "InvalidStateTransitionError",
    "GatewayNotConfiguredError",
    "PaymentVerificationError",
    "PaymentAlreadyUsedError",
]
