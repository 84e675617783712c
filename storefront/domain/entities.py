"""Domain entities.

Entities are objects with identity that persist across state changes.
Aggregates (Cart, Order, Coupon) own their invariants; catalog and
shipping entities are read models managed outside this service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from storefront.domain.base import AggregateRoot, Entity, utcnow
from storefront.domain.exceptions import InvalidStateTransitionError
from storefront.domain.state_machines import OrderStatus
from storefront.domain.value_objects import (
    DiscountType,
    InventoryMovementType,
    PaymentMethod,
    PaymentStatus,
    RateType,
    ShippingAddress,
    StockManagement,
    TaxType,
    new_id,
)


# ============================================================================
# Catalog
# ============================================================================


@dataclass(frozen=True)
class TaxConfig:
    """Per-product tax override."""

    tax_type: TaxType = TaxType.PERCENTAGE
    value: Decimal = Decimal("0")


@dataclass
class ProductVariation:
    """A purchasable variation of a product, addressed by SKU."""

    name: str
    sku: str = ""
    price: Decimal | None = None
    stock: int = 0
    stock_management: StockManagement = StockManagement.INVENTORY

    @property
    def is_inventory_managed(self) -> bool:
        return self.stock_management == StockManagement.INVENTORY


@dataclass(kw_only=True, eq=False)
class Product(Entity):
    """Catalog product with its current stock balance.

    ``stock`` (and each variation's ``stock``) is the materialized
    balance of the inventory ledger.
    """

    name: str
    price: Decimal
    is_active: bool = True
    sku: str = ""
    stock: int = 0
    stock_management: StockManagement = StockManagement.INVENTORY
    variations: list[ProductVariation] = field(default_factory=list)
    tax: TaxConfig | None = None

    @property
    def is_inventory_managed(self) -> bool:
        return self.stock_management == StockManagement.INVENTORY

    def find_variation(self, sku: str | None) -> ProductVariation | None:
        """Find a variation by SKU."""
        if not sku:
            return None
        for variation in self.variations:
            if variation.sku == sku:
                return variation
        return None


@dataclass(kw_only=True, eq=False)
class Customer(Entity):
    """Customer profile; ``id`` is the user id."""

    name: str = ""
    email: str = ""
    phone: str = ""


# ============================================================================
# Cart
# ============================================================================


@dataclass
class CartItem:
    """A line in a user's cart.

    Attributes:
        product_id: Referenced product.
        quantity: Units requested (at least 1).
        variation_sku: SKU of the chosen variation, if any.
        price: Effective unit price captured when the item was added.
    """

    product_id: str
    quantity: int = 1
    variation_sku: str | None = None
    price: Decimal | None = None


@dataclass(kw_only=True, eq=False)
class Cart(AggregateRoot):
    """A user's cart, owned 1:1 by the user."""

    user_id: str
    items: list[CartItem] = field(default_factory=list)
    recovery_email_sent_at: datetime | None = None

    @classmethod
    def create(cls, user_id: str, items: list[CartItem] | None = None) -> "Cart":
        return cls(id=new_id(), user_id=user_id, items=list(items or []))

    @property
    def is_empty(self) -> bool:
        return not self.items

    def clear(self) -> None:
        """Remove all items."""
        self.items = []
        self.touch()


# ============================================================================
# Order
# ============================================================================


@dataclass(frozen=True)
class OrderItem:
    """Denormalized copy of a purchased line.

    Independent of later product edits.
    """

    product_id: str
    name: str
    price: Decimal
    quantity: int
    variation_sku: str | None = None
    variation_name: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(kw_only=True, eq=False)
class Order(AggregateRoot):
    """A placed order.

    Everything except ``status`` (and ``updated_at``) is fixed once the
    order is persisted.
    """

    user_id: str
    items: list[OrderItem]
    subtotal: Decimal
    total: Decimal
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: OrderStatus = OrderStatus.PENDING
    tax_amount: Decimal = Decimal("0")
    coupon_code: str | None = None
    discount_amount: Decimal = Decimal("0")
    shipping_method_id: str | None = None
    shipping_method_name: str | None = None
    shipping_amount: Decimal | None = None
    payment_gateway_order_id: str = ""
    payment_gateway_payment_id: str = ""
    paid_at: datetime | None = None

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def transition_to(self, target: OrderStatus) -> None:
        """Move to a new status.

        Raises:
            InvalidStateTransitionError: If the state machine forbids it.
        """
        if not self.status.can_transition_to(target):
            raise InvalidStateTransitionError(
                entity_type="Order",
                entity_id=self.id,
                current_state=self.status.value,
                target_state=target.value,
                allowed_transitions=[s.value for s in self.status.allowed_transitions()],
            )
        self.status = target
        self.touch()


# ============================================================================
# Coupon
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Coupon(AggregateRoot):
    """Promotional coupon.

    ``code`` is stored in canonical upper-case. ``usage_limit`` of 0
    means unlimited; ``max_discount`` of 0 means uncapped.
    """

    code: str
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Decimal("0")
    min_order_amount: Decimal = Decimal("0")
    max_discount: Decimal = Decimal("0")
    usage_limit: int = 0
    used_count: int = 0
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True

    def __post_init__(self) -> None:
        self.code = self.canonical_code(self.code)

    @staticmethod
    def canonical_code(code: str | None) -> str:
        return (code or "").strip().upper()

    @classmethod
    def create(cls, code: str, **kwargs) -> "Coupon":
        return cls(id=new_id(), code=code, **kwargs)


# ============================================================================
# Shipping
# ============================================================================


@dataclass(kw_only=True, eq=False)
class ShippingZone(Entity):
    """Shipping eligibility rule ranked by ``sort_order``.

    Empty ``country_codes`` (or one containing ``*``) matches every
    country; empty ``state_codes`` / ``zip_prefixes`` do not filter.
    """

    name: str
    country_codes: list[str] = field(default_factory=list)
    state_codes: list[str] = field(default_factory=list)
    zip_prefixes: list[str] = field(default_factory=list)
    sort_order: int = 0
    is_active: bool = True
    description: str = ""


@dataclass(kw_only=True, eq=False)
class ShippingMethod(Entity):
    """Priced shipping option belonging to one zone."""

    zone_id: str
    name: str
    rate_type: RateType = RateType.FLAT
    rate_value: Decimal = Decimal("0")
    min_order_for_free: Decimal = Decimal("0")
    sort_order: int = 0
    is_active: bool = True
    description: str = ""
    estimated_days_min: int | None = None
    estimated_days_max: int | None = None


# ============================================================================
# Inventory Ledger
# ============================================================================


@dataclass(frozen=True)
class InventoryEntry:
    """Immutable stock movement record.

    ``previous_stock + quantity == new_stock`` for every entry.
    """

    product_id: str
    quantity: int
    type: InventoryMovementType
    reason: str
    previous_stock: int
    new_stock: int
    sku: str = ""
    reference_order_id: str | None = None
    notes: str = ""
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
