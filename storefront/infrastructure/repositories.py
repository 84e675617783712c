"""Repositories for storefront collections.

Each collection has an in-memory implementation (the default, also used
by tests) and a SQLAlchemy implementation in ``sql_repositories``. All
methods are coroutines so the two are interchangeable.
"""

from dataclasses import dataclass, replace
from datetime import datetime

import structlog

from storefront.domain.entities import (
    Cart,
    Coupon,
    Customer,
    InventoryEntry,
    Order,
    Product,
    ShippingMethod,
    ShippingZone,
)
from storefront.domain.exceptions import DuplicateCouponCodeError
from storefront.domain.store_config import StoreSettings
from storefront.domain.value_objects import InventoryMovementType
from storefront.infrastructure.config import settings as app_settings

logger = structlog.get_logger()


# ============================================================================
# In-Memory Repositories
# ============================================================================


class ProductRepository:
    """In-memory repository for catalog products."""

    def __init__(self, ledger: "InventoryRepository | None" = None) -> None:
        self._products: dict[str, Product] = {}
        self._ledger = ledger if ledger is not None else InventoryRepository()

    async def get(self, product_id: str) -> Product | None:
        """Get product by ID."""
        return self._products.get(product_id)

    async def get_many(self, product_ids: list[str]) -> dict[str, Product]:
        """Get products by ID; unknown IDs are omitted."""
        return {pid: self._products[pid] for pid in product_ids if pid in self._products}

    async def save(self, product: Product) -> None:
        """Insert or replace a product."""
        self._products[product.id] = product

    async def apply_stock_change(self, product: Product, entry: InventoryEntry) -> None:
        """Store a new stock balance together with its ledger entry.

        The product is only replaced once the entry has been recorded.
        """
        await self._ledger.append(entry)
        self._products[product.id] = product


class CartRepository:
    """In-memory repository for carts, keyed by owner."""

    def __init__(self) -> None:
        self._carts: dict[str, Cart] = {}

    async def get_by_user(self, user_id: str) -> Cart | None:
        """Get a user's cart."""
        return self._carts.get(user_id)

    async def save(self, cart: Cart) -> None:
        """Insert or replace a cart."""
        self._carts[cart.user_id] = cart

    async def clear(self, user_id: str) -> None:
        """Empty a user's cart if it exists."""
        cart = self._carts.get(user_id)
        if cart is not None:
            cart.clear()

    async def list_abandoned(self, updated_before: datetime) -> list[Cart]:
        """Non-empty carts idle since before the cutoff and not yet reminded."""
        return [
            cart
            for cart in self._carts.values()
            if cart.items
            and cart.updated_at < updated_before
            and cart.recovery_email_sent_at is None
        ]

    async def mark_recovery_sent(self, cart_id: str, sent_at: datetime) -> None:
        """Record the recovery reminder without touching ``updated_at``."""
        for cart in self._carts.values():
            if cart.id == cart_id:
                cart.recovery_email_sent_at = sent_at
                return


class CustomerRepository:
    """In-memory repository for customer profiles."""

    def __init__(self) -> None:
        self._customers: dict[str, Customer] = {}

    async def get(self, user_id: str) -> Customer | None:
        return self._customers.get(user_id)

    async def save(self, customer: Customer) -> None:
        self._customers[customer.id] = customer


class OrderRepository:
    """In-memory repository for orders."""

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    async def add(self, order: Order) -> None:
        """Insert a new order."""
        self._orders[order.id] = order

    async def save(self, order: Order) -> None:
        """Persist changes to an existing order."""
        self._orders[order.id] = order

    async def get(self, order_id: str) -> Order | None:
        """Get order by ID."""
        return self._orders.get(order_id)

    async def list_by_user(self, user_id: str) -> list[Order]:
        """A user's orders, newest first."""
        orders = [o for o in reversed(self._orders.values()) if o.user_id == user_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    async def get_by_payment_reference(self, provider_order_id: str, payment_id: str = "") -> Order | None:
        """Order already settled by a provider order or payment ID."""
        for order in self._orders.values():
            if provider_order_id and order.payment_gateway_order_id == provider_order_id:
                return order
            if payment_id and order.payment_gateway_payment_id == payment_id:
                return order
        return None


class CouponRepository:
    """In-memory repository for coupons, unique by canonical code."""

    def __init__(self) -> None:
        self._coupons: dict[str, Coupon] = {}

    async def add(self, coupon: Coupon) -> None:
        """Insert a coupon.

        Raises:
            DuplicateCouponCodeError: If the code is taken.
        """
        if any(c.code == coupon.code for c in self._coupons.values()):
            raise DuplicateCouponCodeError(coupon.code)
        self._coupons[coupon.id] = coupon

    async def get_by_code(self, code: str) -> Coupon | None:
        """Look a coupon up by code, case-insensitively."""
        canonical = Coupon.canonical_code(code)
        if not canonical:
            return None
        for coupon in self._coupons.values():
            if coupon.code == canonical:
                return coupon
        return None

    async def increment_usage(self, coupon_id: str, by: int = 1) -> None:
        """Atomically add ``by`` (possibly negative) to ``used_count``."""
        coupon = self._coupons.get(coupon_id)
        if coupon is not None:
            coupon.used_count += by
            coupon.touch()


class ShippingRepository:
    """In-memory repository for shipping zones and methods."""

    def __init__(self) -> None:
        self._zones: dict[str, ShippingZone] = {}
        self._methods: dict[str, ShippingMethod] = {}

    async def add_zone(self, zone: ShippingZone) -> None:
        self._zones[zone.id] = zone

    async def add_method(self, method: ShippingMethod) -> None:
        self._methods[method.id] = method

    async def list_zones(self) -> list[ShippingZone]:
        """All zones by ascending sort order."""
        return sorted(self._zones.values(), key=lambda z: z.sort_order)

    async def get_zone(self, zone_id: str) -> ShippingZone | None:
        return self._zones.get(zone_id)

    async def list_methods(self, zone_id: str | None = None) -> list[ShippingMethod]:
        """Methods by ascending sort order, optionally for one zone."""
        methods = [
            m for m in self._methods.values() if zone_id is None or m.zone_id == zone_id
        ]
        return sorted(methods, key=lambda m: m.sort_order)

    async def get_method(self, method_id: str) -> ShippingMethod | None:
        return self._methods.get(method_id)


class InventoryRepository:
    """Append-only in-memory stock movement ledger."""

    def __init__(self) -> None:
        self._entries: list[InventoryEntry] = []

    async def append(self, entry: InventoryEntry) -> None:
        self._entries.append(entry)

    async def list_for_product(self, product_id: str, limit: int = 50) -> list[InventoryEntry]:
        """Entries for a product, newest first."""
        entries = [e for e in reversed(self._entries) if e.product_id == product_id]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    async def list_for_order(self, order_id: str) -> list[InventoryEntry]:
        """Entries referencing an order, oldest first."""
        return [e for e in self._entries if e.reference_order_id == order_id]

    async def list_movements(
        self,
        product_id: str | None = None,
        movement_type: InventoryMovementType | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[InventoryEntry], int]:
        """A newest-first page of entries plus the filtered total."""
        entries = [
            e
            for e in reversed(self._entries)
            if (product_id is None or e.product_id == product_id)
            and (movement_type is None or e.type == movement_type)
        ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[offset : offset + limit], len(entries)


class SettingsRepository:
    """Holder for the shared store settings document."""

    def __init__(self, initial: StoreSettings | None = None) -> None:
        self._settings = initial or StoreSettings()

    async def get(self) -> StoreSettings:
        """Current settings; callers receive a copy."""
        return replace(self._settings)

    async def save(self, store_settings: StoreSettings) -> None:
        self._settings = replace(store_settings)


# ============================================================================
# Repository Bundle
# ============================================================================


@dataclass
class Repositories:
    """All repositories used by the application layer."""

    products: ProductRepository
    carts: CartRepository
    customers: CustomerRepository
    orders: OrderRepository
    coupons: CouponRepository
    shipping: ShippingRepository
    inventory: InventoryRepository
    settings: SettingsRepository


def create_memory_repositories() -> Repositories:
    """Build a fresh set of in-memory repositories."""
    inventory = InventoryRepository()
    return Repositories(
        products=ProductRepository(inventory),
        carts=CartRepository(),
        customers=CustomerRepository(),
        orders=OrderRepository(),
        coupons=CouponRepository(),
        shipping=ShippingRepository(),
        inventory=inventory,
        settings=SettingsRepository(),
    )


# Global repository instance
_repositories: Repositories | None = None


def get_repositories() -> Repositories:
    """Get repositories singleton for the configured backend."""
    global _repositories
    if _repositories is None:
        if app_settings.store_backend == "sql":
            from storefront.infrastructure.sql_repositories import create_sql_repositories

            _repositories = create_sql_repositories()
        else:
            _repositories = create_memory_repositories()
        logger.info("repositories_initialized", backend=app_settings.store_backend)
    return _repositories


def reset_repositories() -> None:
    """Reset repositories (for testing)."""
    global _repositories
    _repositories = None
