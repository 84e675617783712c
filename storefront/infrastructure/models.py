"""SQLAlchemy models for database tables.

Provides ORM models for products, carts, customers, orders, coupons,
shipping zones and methods, the inventory ledger and store settings.
Nested document-shaped data (cart items, order items, variations,
settings sections) is stored as JSON (JSONB on PostgreSQL).
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from storefront.infrastructure.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")
Amount = Numeric(12, 2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


# ============================================================================
# Catalog Models
# ============================================================================


class ProductModel(Base):
    """Catalog product with its materialized stock balance."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(500), nullable=False)
    price = Column(Amount, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    sku = Column(String(100), nullable=False, default="")
    stock = Column(Integer, nullable=False, default=0)
    stock_management = Column(String(20), nullable=False, default="inventory")
    variations = Column(JSONType, nullable=False, default=list)
    tax = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class CustomerModel(Base):
    """Customer profile keyed by user id."""

    __tablename__ = "customers"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    phone = Column(String(50), nullable=False, default="")


# ============================================================================
# Cart / Order Models
# ============================================================================


class CartModel(Base):
    """A user's cart; one per user."""

    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, unique=True)
    items = Column(JSONType, nullable=False, default=list)
    recovery_email_sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class OrderModel(Base):
    """Order model for database persistence.

    Items and the shipping address are denormalized snapshots.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    items = Column(JSONType, nullable=False)
    subtotal = Column(Amount, nullable=False)
    tax_amount = Column(Amount, nullable=False, default=0)
    total = Column(Amount, nullable=False)
    coupon_code = Column(String(50), nullable=True)
    discount_amount = Column(Amount, nullable=False, default=0)
    shipping_method_id = Column(String(36), nullable=True)
    shipping_method_name = Column(String(255), nullable=True)
    shipping_amount = Column(Amount, nullable=True)
    shipping_address = Column(JSONType, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_method = Column(String(20), nullable=False, default="cod")
    payment_status = Column(String(20), nullable=False, default="cod")
    payment_gateway_order_id = Column(String(100), nullable=False, default="")
    payment_gateway_payment_id = Column(String(100), nullable=False, default="")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


# A provider payment settles at most one order.
Index(
    "uq_orders_payment_gateway_order_id",
    OrderModel.payment_gateway_order_id,
    unique=True,
    postgresql_where=text("payment_gateway_order_id <> ''"),
    sqlite_where=text("payment_gateway_order_id <> ''"),
)


# ============================================================================
# Coupon Models
# ============================================================================


class CouponModel(Base):
    """Promotional coupon; ``code`` is unique and upper-case."""

    __tablename__ = "coupons"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(50), nullable=False, unique=True)
    discount_type = Column(String(20), nullable=False, default="percentage")
    discount_value = Column(Amount, nullable=False, default=0)
    min_order_amount = Column(Amount, nullable=False, default=0)
    max_discount = Column(Amount, nullable=False, default=0)
    usage_limit = Column(Integer, nullable=False, default=0)
    used_count = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


# ============================================================================
# Shipping Models
# ============================================================================


class ShippingZoneModel(Base):
    """Shipping eligibility rule ranked by ``sort_order``."""

    __tablename__ = "shipping_zones"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    country_codes = Column(JSONType, nullable=False, default=list)
    state_codes = Column(JSONType, nullable=False, default=list)
    zip_prefixes = Column(JSONType, nullable=False, default=list)
    sort_order = Column(Integer, nullable=False, default=0, index=True)
    is_active = Column(Boolean, nullable=False, default=True)


class ShippingMethodModel(Base):
    """Priced shipping option belonging to one zone."""

    __tablename__ = "shipping_methods"

    id = Column(String(36), primary_key=True, default=_new_id)
    zone_id = Column(
        String(36),
        ForeignKey("shipping_zones.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    rate_type = Column(String(20), nullable=False, default="flat")
    rate_value = Column(Amount, nullable=False, default=0)
    min_order_for_free = Column(Amount, nullable=False, default=0)
    estimated_days_min = Column(Integer, nullable=True)
    estimated_days_max = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


# ============================================================================
# Inventory Ledger Models
# ============================================================================


class InventoryEntryModel(Base):
    """Append-only stock movement record."""

    __tablename__ = "inventory_entries"

    id = Column(String(36), primary_key=True, default=_new_id)
    product_id = Column(String(36), nullable=False)
    sku = Column(String(100), nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False, index=True)
    reason = Column(String(255), nullable=False, default="")
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    reference_order_id = Column(String(36), nullable=True, index=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


Index(
    "ix_inventory_entries_product_created",
    InventoryEntryModel.product_id,
    InventoryEntryModel.created_at.desc(),
)


# ============================================================================
# Store Settings Model
# ============================================================================


class StoreSettingsModel(Base):
    """Single-row store settings document."""

    __tablename__ = "store_settings"

    id = Column(Integer, primary_key=True, default=1)
    site_name = Column(String(255), nullable=False, default="ShopNow")
    site_url = Column(String(500), nullable=False, default="")
    checkout = Column(JSONType, nullable=False, default=dict)
    payment = Column(JSONType, nullable=False, default=dict)
    notifications = Column(JSONType, nullable=False, default=dict)
    coupon_enabled = Column(Boolean, nullable=False, default=False)
    shipping_enabled = Column(Boolean, nullable=False, default=False)
    tax_enabled = Column(Boolean, nullable=False, default=False)
    default_tax_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    abandoned_cart_enabled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
