"""Create storefront tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Create catalog, cart, order, coupon, shipping, ledger and settings tables."""
    # Catalog
    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("sku", sa.String(100), nullable=False, server_default=""),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("stock_management", sa.String(20), nullable=False, server_default="inventory"),
        sa.Column("variations", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("tax", postgresql.JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_products_is_active", "products", ["is_active"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(50), nullable=False, server_default=""),
    )

    # Carts
    op.create_table(
        "carts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False, unique=True),
        sa.Column("items", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("recovery_email_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_carts_updated_at", "carts", ["updated_at"])

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("items", postgresql.JSONB, nullable=False),
        # Totals
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("coupon_code", sa.String(50), nullable=True),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        # Shipping
        sa.Column("shipping_method_id", sa.String(36), nullable=True),
        sa.Column("shipping_method_name", sa.String(255), nullable=True),
        sa.Column("shipping_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("shipping_address", postgresql.JSONB, nullable=False),
        # Status and payment
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cod"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="cod"),
        sa.Column("payment_gateway_order_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("payment_gateway_payment_id", sa.String(100), nullable=False, server_default=""),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])
    op.create_index(
        "uq_orders_payment_gateway_order_id",
        "orders",
        ["payment_gateway_order_id"],
        unique=True,
        postgresql_where=sa.text("payment_gateway_order_id <> ''"),
    )

    # Coupons
    op.create_table(
        "coupons",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("discount_type", sa.String(20), nullable=False, server_default="percentage"),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("min_order_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("max_discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("usage_limit", sa.Integer, nullable=False, server_default="0"),
        sa.Column("used_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # Shipping
    op.create_table(
        "shipping_zones",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("country_codes", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("state_codes", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("zip_prefixes", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_shipping_zones_sort_order", "shipping_zones", ["sort_order"])

    op.create_table(
        "shipping_methods",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "zone_id",
            sa.String(36),
            sa.ForeignKey("shipping_zones.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("rate_type", sa.String(20), nullable=False, server_default="flat"),
        sa.Column("rate_value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("min_order_for_free", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("estimated_days_min", sa.Integer, nullable=True),
        sa.Column("estimated_days_max", sa.Integer, nullable=True),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_shipping_methods_zone_id", "shipping_methods", ["zone_id"])

    # Inventory ledger
    op.create_table(
        "inventory_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_id", sa.String(36), nullable=False),
        sa.Column("sku", sa.String(100), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False, server_default=""),
        sa.Column("previous_stock", sa.Integer, nullable=False),
        sa.Column("new_stock", sa.Integer, nullable=False),
        sa.Column("reference_order_id", sa.String(36), nullable=True),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_inventory_entries_product_created",
        "inventory_entries",
        ["product_id", sa.text("created_at DESC")],
    )
    op.create_index("ix_inventory_entries_type", "inventory_entries", ["type"])
    op.create_index(
        "ix_inventory_entries_reference_order_id",
        "inventory_entries",
        ["reference_order_id"],
    )

    # Store settings (single row)
    op.create_table(
        "store_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("site_name", sa.String(255), nullable=False, server_default="ShopNow"),
        sa.Column("site_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("checkout", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("payment", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("notifications", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("coupon_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("shipping_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("tax_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("default_tax_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("abandoned_cart_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    """Drop storefront tables."""
    op.drop_table("store_settings")
    op.drop_index("ix_inventory_entries_reference_order_id", table_name="inventory_entries")
    op.drop_index("ix_inventory_entries_type", table_name="inventory_entries")
    op.drop_index("ix_inventory_entries_product_created", table_name="inventory_entries")
    op.drop_table("inventory_entries")
    op.drop_index("ix_shipping_methods_zone_id", table_name="shipping_methods")
    op.drop_table("shipping_methods")
    op.drop_index("ix_shipping_zones_sort_order", table_name="shipping_zones")
    op.drop_table("shipping_zones")
    op.drop_table("coupons")
    op.drop_index("uq_orders_payment_gateway_order_id", table_name="orders")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_carts_updated_at", table_name="carts")
    op.drop_table("carts")
    op.drop_table("customers")
    op.drop_index("ix_products_is_active", table_name="products")
    op.drop_table("products")
