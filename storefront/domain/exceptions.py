"""Domain exceptions.

All domain-level errors that represent business rule violations.
Each error carries a machine-readable ``error_code`` and the HTTP status
the API layer renders it with.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Taxonomy Roots
# ============================================================================


class ValidationError(DomainError):
    """Missing or malformed input; user-correctable."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(DomainError):
    """A referenced resource does not exist."""

    error_code = "NOT_FOUND"
    status_code = 404


class ConflictError(DomainError):
    """The request conflicts with current resource state."""

    error_code = "CONFLICT"
    status_code = 409


class GatewayError(DomainError):
    """Payment provider misconfiguration or rejection."""

    error_code = "GATEWAY_ERROR"
    status_code = 400


class InternalError(DomainError):
    """Unexpected failure."""

    error_code = "INTERNAL_ERROR"
    status_code = 500


# ============================================================================
# Checkout Errors
# ============================================================================


class MissingFieldsError(ValidationError):
    """Raised when required shipping-address fields are blank.

    Lists every missing field rather than stopping at the first.
    """

    error_code = "MISSING_FIELDS"

    def __init__(self, fields: list[str]) -> None:
        """Initialize missing fields error.

        Args:
            fields: Names of all missing fields, in check order.
        """
        super().__init__(
            "Missing required shipping fields: " + ", ".join(fields),
            details={"fields": list(fields)},
        )
        self.fields = list(fields)


class EmptyCartError(ValidationError):
    """Raised when the cart has no orderable items."""

    error_code = "EMPTY_CART"


class InvalidPaymentMethodError(ValidationError):
    """Raised when the payment method is unknown or disabled."""

    error_code = "INVALID_PAYMENT_METHOD"


class ShippingValidationError(ValidationError):
    """Raised when the chosen shipping method or amount does not check out."""

    error_code = "INVALID_SHIPPING"


# ============================================================================
# Coupon Errors
# ============================================================================


class CouponNotFoundError(NotFoundError):
    """Raised when no active coupon has the given code."""

    error_code = "COUPON_NOT_FOUND"

    def __init__(self, code: str) -> None:
        super().__init__("Invalid coupon code", details={"code": code})


class CouponRejectedError(ValidationError):
    """Base class for a known coupon that cannot be applied."""

    error_code = "COUPON_REJECTED"


class CouponNotYetActiveError(CouponRejectedError):
    """Raised when the coupon's start date is in the future."""

    error_code = "COUPON_NOT_YET_ACTIVE"


class CouponExpiredError(CouponRejectedError):
    """Raised when the coupon's end date has passed."""

    error_code = "COUPON_EXPIRED"


class CouponLimitReachedError(CouponRejectedError):
    """Raised when the coupon's usage limit is exhausted."""

    error_code = "COUPON_LIMIT_REACHED"


class CouponBelowMinimumError(CouponRejectedError):
    """Raised when the order is below the coupon's minimum amount."""

    error_code = "COUPON_BELOW_MINIMUM"


class DuplicateCouponCodeError(ConflictError):
    """Raised when a coupon code is already taken."""

    error_code = "DUPLICATE_COUPON_CODE"

    def __init__(self, code: str) -> None:
        super().__init__("Coupon code already exists", details={"code": code})


# ============================================================================
# Catalog / Inventory Errors
# ============================================================================


class ProductNotFoundError(NotFoundError):
    """Raised when a product does not exist."""

    error_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str) -> None:
        super().__init__("Product not found", details={"product_id": product_id})


class InvalidSkuError(ValidationError):
    """Raised when a SKU matches neither the product nor its variations."""

    error_code = "INVALID_SKU"

    def __init__(self, product_id: str, sku: str) -> None:
        super().__init__(
            "Invalid SKU for this product",
            details={"product_id": product_id, "sku": sku},
        )


class InsufficientStockError(ConflictError):
    """Raised when a stock decrement would go below zero."""

    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, available: int, requested: int, name: str | None = None) -> None:
        """Initialize insufficient stock error.

        Args:
            product_id: Product whose stock is short.
            available: Current stock.
            requested: Quantity requested.
            name: Optional display name for the message.
        """
        label = f" for {name}" if name else ""
        super().__init__(
            f"Insufficient stock{label}. Available: {available}, requested: {requested}.",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available
        self.requested = requested


# ============================================================================
# Order Errors
# ============================================================================


class OrderNotFoundError(NotFoundError):
    """Raised when an order does not exist or is not visible to the caller."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        super().__init__("Order not found", details={"order_id": order_id})


class InvalidStateTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Payment Gateway Errors
# ============================================================================


class GatewayNotConfiguredError(GatewayError):
    """Raised when a provider is disabled or missing credentials."""

    error_code = "GATEWAY_NOT_CONFIGURED"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message, details={"provider": provider})
        self.provider = provider


class PaymentVerificationError(GatewayError):
    """Raised when submitted payment proof does not verify."""

    error_code = "PAYMENT_VERIFICATION_FAILED"


class PaymentAlreadyUsedError(PaymentVerificationError):
    """Raised when a provider payment is already attached to an order."""

    def __init__(self, provider_order_id: str, payment_id: str = "") -> None:
        super().__init__(
            "Payment already used for another order.",
            details={"provider_order_id": provider_order_id, "payment_id": payment_id},
        )
        self.provider_order_id = provider_order_id
        self.payment_id = payment_id
