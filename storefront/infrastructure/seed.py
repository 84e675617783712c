"""Demo store seeding.

Populates a repository bundle with a small, deterministic store: COD
checkout, a few products (one with variations), an India zone with two
shipping methods, a rest-of-world zone and a welcome coupon. Used by
``scripts/seed_store.py`` and local development.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog

from storefront.domain.entities import (
    Coupon,
    Product,
    ProductVariation,
    ShippingMethod,
    ShippingZone,
    TaxConfig,
)
from storefront.domain.store_config import StoreSettings
from storefront.domain.value_objects import DiscountType, RateType, StockManagement, TaxType
from storefront.infrastructure.database import Base
from storefront.infrastructure.repositories import Repositories

logger = structlog.get_logger()


@dataclass
class SeedResult:
    """What a seeding run created."""

    products: int = 0
    zones: int = 0
    methods: int = 0
    coupons: int = 0


def demo_settings(site_url: str = "http://localhost:5173") -> StoreSettings:
    """Store settings with COD checkout and every optional feature on."""
    return StoreSettings(
        site_name="ShopNow",
        site_url=site_url,
        checkout={"address": {"enabled": True, "required": True}},
        payment={"currency": "INR", "cod": {"enabled": True}},
        coupon_enabled=True,
        shipping_enabled=True,
        tax_enabled=True,
        default_tax_percentage=Decimal("18"),
        abandoned_cart_enabled=True,
    )


def demo_products() -> list[Product]:
    return [
        Product(
            id="prod-tshirt",
            name="Cotton T-Shirt",
            price=Decimal("499.00"),
            sku="TSHIRT",
            variations=[
                ProductVariation(name="Small", sku="TSHIRT-S", stock=25),
                ProductVariation(name="Medium", sku="TSHIRT-M", stock=40),
                ProductVariation(name="Large", sku="TSHIRT-L", price=Decimal("549.00"), stock=15),
            ],
        ),
        Product(
            id="prod-mug",
            name="Ceramic Mug",
            price=Decimal("299.00"),
            sku="MUG",
            stock=60,
            tax=TaxConfig(tax_type=TaxType.PERCENTAGE, value=Decimal("12")),
        ),
        Product(
            id="prod-ebook",
            name="Recipe E-Book",
            price=Decimal("199.00"),
            sku="EBOOK",
            stock_management=StockManagement.NONE,
            tax=TaxConfig(tax_type=TaxType.FIXED, value=Decimal("5")),
        ),
    ]


def demo_shipping() -> tuple[list[ShippingZone], list[ShippingMethod]]:
    india = ShippingZone(id="zone-in", name="India", country_codes=["IN"], sort_order=0)
    world = ShippingZone(id="zone-world", name="Rest of World", country_codes=["*"], sort_order=10)
    methods = [
        ShippingMethod(
            id="ship-in-standard",
            zone_id=india.id,
            name="Standard",
            rate_type=RateType.FLAT,
            rate_value=Decimal("50"),
            min_order_for_free=Decimal("999"),
            estimated_days_min=3,
            estimated_days_max=5,
        ),
        ShippingMethod(
            id="ship-in-express",
            zone_id=india.id,
            name="Express",
            rate_type=RateType.PER_ITEM,
            rate_value=Decimal("40"),
            sort_order=1,
            estimated_days_min=1,
            estimated_days_max=2,
        ),
        ShippingMethod(
            id="ship-world",
            zone_id=world.id,
            name="International",
            rate_type=RateType.PER_ORDER,
            rate_value=Decimal("1500"),
            estimated_days_min=7,
            estimated_days_max=14,
        ),
    ]
    return [india, world], methods


async def seed_demo_store(repos: Repositories, site_url: str | None = None) -> SeedResult:
    """Write the demo store into ``repos``.

    Args:
        repos: Target repositories (memory or SQL).
        site_url: Storefront URL used in notification links.

    Returns:
        Counts of created records.
    """
    result = SeedResult()
    await repos.settings.save(demo_settings(site_url) if site_url else demo_settings())

    for product in demo_products():
        await repos.products.save(product)
        result.products += 1

    zones, methods = demo_shipping()
    for zone in zones:
        await repos.shipping.add_zone(zone)
        result.zones += 1
    for method in methods:
        await repos.shipping.add_method(method)
        result.methods += 1

    await repos.coupons.add(
        Coupon.create(
            "WELCOME10",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            max_discount=Decimal("200"),
            usage_limit=100,
        )
    )
    result.coupons += 1

    logger.info(
        "demo_store_seeded",
        products=result.products,
        zones=result.zones,
        methods=result.methods,
        coupons=result.coupons,
    )
    return result


async def create_tables(engine) -> None:
    """Create database tables if they don't exist."""
    # Models must be imported so their tables register on Base.metadata
    from storefront.infrastructure import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
