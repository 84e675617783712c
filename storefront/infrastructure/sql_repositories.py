"""SQLAlchemy async repositories.

Drop-in replacements for the in-memory repositories, selected with
``STOREFRONT_STORE_BACKEND=sql``. Each method runs in its own session
and transaction.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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
from storefront.domain.exceptions import DuplicateCouponCodeError, PaymentAlreadyUsedError
from storefront.domain.state_machines import OrderStatus
from storefront.domain.store_config import StoreSettings
from storefront.domain.value_objects import (
    DiscountType,
    InventoryMovementType,
    PaymentMethod,
    PaymentStatus,
    RateType,
    ShippingAddress,
    StockManagement,
    TaxType,
    to_decimal,
)
from storefront.infrastructure.database import get_session_factory
from storefront.infrastructure.models import (
    CartModel,
    CouponModel,
    CustomerModel,
    InventoryEntryModel,
    OrderModel,
    ProductModel,
    ShippingMethodModel,
    ShippingZoneModel,
    StoreSettingsModel,
)
from storefront.infrastructure.repositories import Repositories

Sessions = async_sessionmaker[AsyncSession]


def _aware(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


# ============================================================================
# Row <-> Entity Mapping
# ============================================================================


def _product_from_row(row: ProductModel) -> Product:
    tax = None
    if row.tax:
        tax = TaxConfig(
            tax_type=TaxType(row.tax.get("taxType", "percentage")),
            value=to_decimal(row.tax.get("value")),
        )
    return Product(
        id=row.id,
        name=row.name,
        price=to_decimal(row.price),
        is_active=row.is_active,
        sku=row.sku or "",
        stock=row.stock,
        stock_management=StockManagement(row.stock_management),
        variations=[
            ProductVariation(
                name=v.get("name", ""),
                sku=v.get("sku", ""),
                price=None if v.get("price") is None else to_decimal(v["price"]),
                stock=int(v.get("stock", 0)),
                stock_management=StockManagement(v.get("stockManagement", "inventory")),
            )
            for v in row.variations or []
        ],
        tax=tax,
    )


def _product_values(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "price": product.price,
        "is_active": product.is_active,
        "sku": product.sku,
        "stock": product.stock,
        "stock_management": product.stock_management.value,
        "variations": [
            {
                "name": v.name,
                "sku": v.sku,
                "price": _money(v.price),
                "stock": v.stock,
                "stockManagement": v.stock_management.value,
            }
            for v in product.variations
        ],
        "tax": (
            {"taxType": product.tax.tax_type.value, "value": str(product.tax.value)}
            if product.tax
            else None
        ),
    }


def _cart_from_row(row: CartModel) -> Cart:
    return Cart(
        id=row.id,
        user_id=row.user_id,
        items=[
            CartItem(
                product_id=i["productId"],
                quantity=int(i.get("quantity", 1)),
                variation_sku=i.get("variationSku"),
                price=None if i.get("price") is None else to_decimal(i["price"]),
            )
            for i in row.items or []
        ],
        recovery_email_sent_at=_aware(row.recovery_email_sent_at),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _cart_items(cart: Cart) -> list[dict[str, Any]]:
    return [
        {
            "productId": i.product_id,
            "quantity": i.quantity,
            "variationSku": i.variation_sku,
            "price": _money(i.price),
        }
        for i in cart.items
    ]


def _order_from_row(row: OrderModel) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        items=[
            OrderItem(
                product_id=i["productId"],
                name=i["name"],
                price=to_decimal(i["price"]),
                quantity=int(i["quantity"]),
                variation_sku=i.get("variationSku"),
                variation_name=i.get("variationName", ""),
            )
            for i in row.items
        ],
        subtotal=to_decimal(row.subtotal),
        tax_amount=to_decimal(row.tax_amount),
        total=to_decimal(row.total),
        coupon_code=row.coupon_code,
        discount_amount=to_decimal(row.discount_amount),
        shipping_method_id=row.shipping_method_id,
        shipping_method_name=row.shipping_method_name,
        shipping_amount=None if row.shipping_amount is None else to_decimal(row.shipping_amount),
        shipping_address=ShippingAddress.from_dict(row.shipping_address),
        status=OrderStatus(row.status),
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        payment_gateway_order_id=row.payment_gateway_order_id or "",
        payment_gateway_payment_id=row.payment_gateway_payment_id or "",
        paid_at=_aware(row.paid_at),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _order_values(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "items": [
            {
                "productId": i.product_id,
                "name": i.name,
                "price": str(i.price),
                "quantity": i.quantity,
                "variationSku": i.variation_sku,
                "variationName": i.variation_name,
            }
            for i in order.items
        ],
        "subtotal": order.subtotal,
        "tax_amount": order.tax_amount,
        "total": order.total,
        "coupon_code": order.coupon_code,
        "discount_amount": order.discount_amount,
        "shipping_method_id": order.shipping_method_id,
        "shipping_method_name": order.shipping_method_name,
        "shipping_amount": order.shipping_amount,
        "shipping_address": order.shipping_address.to_dict(),
        "status": order.status.value,
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status.value,
        "payment_gateway_order_id": order.payment_gateway_order_id,
        "payment_gateway_payment_id": order.payment_gateway_payment_id,
        "paid_at": order.paid_at,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _coupon_from_row(row: CouponModel) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        discount_type=DiscountType(row.discount_type),
        discount_value=to_decimal(row.discount_value),
        min_order_amount=to_decimal(row.min_order_amount),
        max_discount=to_decimal(row.max_discount),
        usage_limit=row.usage_limit,
        used_count=row.used_count,
        start_date=_aware(row.start_date),
        end_date=_aware(row.end_date),
        is_active=row.is_active,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _zone_from_row(row: ShippingZoneModel) -> ShippingZone:
    return ShippingZone(
        id=row.id,
        name=row.name,
        description=row.description or "",
        country_codes=list(row.country_codes or []),
        state_codes=list(row.state_codes or []),
        zip_prefixes=list(row.zip_prefixes or []),
        sort_order=row.sort_order,
        is_active=row.is_active,
    )


def _method_from_row(row: ShippingMethodModel) -> ShippingMethod:
    return ShippingMethod(
        id=row.id,
        zone_id=row.zone_id,
        name=row.name,
        description=row.description or "",
        rate_type=RateType(row.rate_type),
        rate_value=to_decimal(row.rate_value),
        min_order_for_free=to_decimal(row.min_order_for_free),
        estimated_days_min=row.estimated_days_min,
        estimated_days_max=row.estimated_days_max,
        sort_order=row.sort_order,
        is_active=row.is_active,
    )


def _entry_from_row(row: InventoryEntryModel) -> InventoryEntry:
    return InventoryEntry(
        id=row.id,
        product_id=row.product_id,
        sku=row.sku or "",
        quantity=row.quantity,
        type=InventoryMovementType(row.type),
        reason=row.reason or "",
        previous_stock=row.previous_stock,
        new_stock=row.new_stock,
        reference_order_id=row.reference_order_id,
        notes=row.notes or "",
        created_at=_aware(row.created_at),
    )


def _entry_values(entry: InventoryEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "product_id": entry.product_id,
        "sku": entry.sku,
        "quantity": entry.quantity,
        "type": entry.type.value,
        "reason": entry.reason,
        "previous_stock": entry.previous_stock,
        "new_stock": entry.new_stock,
        "reference_order_id": entry.reference_order_id,
        "notes": entry.notes,
        "created_at": entry.created_at,
    }


# ============================================================================
# SQL Repositories
# ============================================================================


class _SqlRepository:
    def __init__(self, sessions: Sessions) -> None:
        self._sessions = sessions


class SqlProductRepository(_SqlRepository):
    """Products table."""

    async def get(self, product_id: str) -> Product | None:
        async with self._sessions() as session:
            row = await session.get(ProductModel, product_id)
            return _product_from_row(row) if row else None

    async def get_many(self, product_ids: list[str]) -> dict[str, Product]:
        if not product_ids:
            return {}
        async with self._sessions() as session:
            result = await session.execute(
                select(ProductModel).where(ProductModel.id.in_(product_ids))
            )
            return {row.id: _product_from_row(row) for row in result.scalars()}

    async def save(self, product: Product) -> None:
        async with self._sessions() as session, session.begin():
            await session.merge(ProductModel(**_product_values(product)))

    async def apply_stock_change(self, product: Product, entry: InventoryEntry) -> None:
        """Write the balance and its ledger entry in one transaction."""
        async with self._sessions() as session, session.begin():
            await session.merge(ProductModel(**_product_values(product)))
            session.add(InventoryEntryModel(**_entry_values(entry)))


class SqlCartRepository(_SqlRepository):
    """Carts table."""

    async def get_by_user(self, user_id: str) -> Cart | None:
        async with self._sessions() as session:
            result = await session.execute(select(CartModel).where(CartModel.user_id == user_id))
            row = result.scalar_one_or_none()
            return _cart_from_row(row) if row else None

    async def save(self, cart: Cart) -> None:
        async with self._sessions() as session, session.begin():
            await session.merge(
                CartModel(
                    id=cart.id,
                    user_id=cart.user_id,
                    items=_cart_items(cart),
                    recovery_email_sent_at=cart.recovery_email_sent_at,
                    created_at=cart.created_at,
                    updated_at=cart.updated_at,
                )
            )

    async def clear(self, user_id: str) -> None:
        async with self._sessions() as session, session.begin():
            await session.execute(
                update(CartModel)
                .where(CartModel.user_id == user_id)
                .values(items=[], updated_at=datetime.now(timezone.utc))
            )

    async def list_abandoned(self, updated_before: datetime) -> list[Cart]:
        async with self._sessions() as session:
            result = await session.execute(
                select(CartModel).where(
                    CartModel.updated_at < updated_before,
                    CartModel.recovery_email_sent_at.is_(None),
                )
            )
            # Emptiness is checked here; JSON length is not portable SQL.
            return [_cart_from_row(row) for row in result.scalars() if row.items]

    async def mark_recovery_sent(self, cart_id: str, sent_at: datetime) -> None:
        async with self._sessions() as session, session.begin():
            await session.execute(
                update(CartModel)
                .where(CartModel.id == cart_id)
                .values(recovery_email_sent_at=sent_at)
            )


class SqlCustomerRepository(_SqlRepository):
    """Customers table."""

    async def get(self, user_id: str) -> Customer | None:
        async with self._sessions() as session:
            row = await session.get(CustomerModel, user_id)
            if row is None:
                return None
            return Customer(id=row.id, name=row.name, email=row.email, phone=row.phone)

    async def save(self, customer: Customer) -> None:
        async with self._sessions() as session, session.begin():
            await session.merge(
                CustomerModel(
                    id=customer.id,
                    name=customer.name,
                    email=customer.email,
                    phone=customer.phone,
                )
            )


class SqlOrderRepository(_SqlRepository):
    """Orders table."""

    async def add(self, order: Order) -> None:
        """Insert a new order.

        Raises:
            PaymentAlreadyUsedError: The provider order ID is already taken.
        """
        try:
            async with self._sessions() as session, session.begin():
                session.add(OrderModel(**_order_values(order)))
        except IntegrityError as e:
            if order.payment_gateway_order_id:
                raise PaymentAlreadyUsedError(
                    order.payment_gateway_order_id, order.payment_gateway_payment_id
                ) from e
            raise

    async def save(self, order: Order) -> None:
        async with self._sessions() as session, session.begin():
            await session.merge(OrderModel(**_order_values(order)))

    async def get(self, order_id: str) -> Order | None:
        async with self._sessions() as session:
            row = await session.get(OrderModel, order_id)
            return _order_from_row(row) if row else None

    async def list_by_user(self, user_id: str) -> list[Order]:
        async with self._sessions() as session:
            result = await session.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc())
            )
            return [_order_from_row(row) for row in result.scalars()]

    async def get_by_payment_reference(self, provider_order_id: str, payment_id: str = "") -> Order | None:
        conditions = []
        if provider_order_id:
            conditions.append(OrderModel.payment_gateway_order_id == provider_order_id)
        if payment_id:
            conditions.append(OrderModel.payment_gateway_payment_id == payment_id)
        if not conditions:
            return None
        async with self._sessions() as session:
            result = await session.execute(select(OrderModel).where(or_(*conditions)).limit(1))
            row = result.scalar_one_or_none()
            return _order_from_row(row) if row else None


class SqlCouponRepository(_SqlRepository):
    """Coupons table."""

    async def add(self, coupon: Coupon) -> None:
        try:
            async with self._sessions() as session, session.begin():
                session.add(
                    CouponModel(
                        id=coupon.id,
                        code=coupon.code,
                        discount_type=coupon.discount_type.value,
                        discount_value=coupon.discount_value,
                        min_order_amount=coupon.min_order_amount,
                        max_discount=coupon.max_discount,
                        usage_limit=coupon.usage_limit,
                        used_count=coupon.used_count,
                        start_date=coupon.start_date,
                        end_date=coupon.end_date,
                        is_active=coupon.is_active,
                        created_at=coupon.created_at,
                        updated_at=coupon.updated_at,
                    )
                )
        except IntegrityError as e:
            raise DuplicateCouponCodeError(coupon.code) from e

    async def get_by_code(self, code: str) -> Coupon | None:
        canonical = Coupon.canonical_code(code)
        if not canonical:
            return None
        async with self._sessions() as session:
            result = await session.execute(select(CouponModel).where(CouponModel.code == canonical))
            row = result.scalar_one_or_none()
            return _coupon_from_row(row) if row else None

    async def increment_usage(self, coupon_id: str, by: int = 1) -> None:
        async with self._sessions() as session, session.begin():
            await session.execute(
                update(CouponModel)
                .where(CouponModel.id == coupon_id)
                .values(used_count=CouponModel.used_count + by)
            )


class SqlShippingRepository(_SqlRepository):
    """Shipping zones and methods tables."""

    async def add_zone(self, zone: ShippingZone) -> None:
        async with self._sessions() as session, session.begin():
            session.add(
                ShippingZoneModel(
                    id=zone.id,
                    name=zone.name,
                    description=zone.description,
                    country_codes=list(zone.country_codes),
                    state_codes=list(zone.state_codes),
                    zip_prefixes=list(zone.zip_prefixes),
                    sort_order=zone.sort_order,
                    is_active=zone.is_active,
                )
            )

    async def add_method(self, method: ShippingMethod) -> None:
        async with self._sessions() as session, session.begin():
            session.add(
                ShippingMethodModel(
                    id=method.id,
                    zone_id=method.zone_id,
                    name=method.name,
                    description=method.description,
                    rate_type=method.rate_type.value,
                    rate_value=method.rate_value,
                    min_order_for_free=method.min_order_for_free,
                    estimated_days_min=method.estimated_days_min,
                    estimated_days_max=method.estimated_days_max,
                    sort_order=method.sort_order,
                    is_active=method.is_active,
                )
            )

    async def list_zones(self) -> list[ShippingZone]:
        async with self._sessions() as session:
            result = await session.execute(
                select(ShippingZoneModel).order_by(ShippingZoneModel.sort_order)
            )
            return [_zone_from_row(row) for row in result.scalars()]

    async def get_zone(self, zone_id: str) -> ShippingZone | None:
        async with self._sessions() as session:
            row = await session.get(ShippingZoneModel, zone_id)
            return _zone_from_row(row) if row else None

    async def list_methods(self, zone_id: str | None = None) -> list[ShippingMethod]:
        query = select(ShippingMethodModel).order_by(ShippingMethodModel.sort_order)
        if zone_id is not None:
            query = query.where(ShippingMethodModel.zone_id == zone_id)
        async with self._sessions() as session:
            result = await session.execute(query)
            return [_method_from_row(row) for row in result.scalars()]

    async def get_method(self, method_id: str) -> ShippingMethod | None:
        async with self._sessions() as session:
            row = await session.get(ShippingMethodModel, method_id)
            return _method_from_row(row) if row else None


class SqlInventoryRepository(_SqlRepository):
    """Inventory ledger table."""

    async def append(self, entry: InventoryEntry) -> None:
        async with self._sessions() as session, session.begin():
            session.add(InventoryEntryModel(**_entry_values(entry)))

    async def list_for_product(self, product_id: str, limit: int = 50) -> list[InventoryEntry]:
        async with self._sessions() as session:
            result = await session.execute(
                select(InventoryEntryModel)
                .where(InventoryEntryModel.product_id == product_id)
                .order_by(InventoryEntryModel.created_at.desc())
                .limit(limit)
            )
            return [_entry_from_row(row) for row in result.scalars()]

    async def list_for_order(self, order_id: str) -> list[InventoryEntry]:
        async with self._sessions() as session:
            result = await session.execute(
                select(InventoryEntryModel)
                .where(InventoryEntryModel.reference_order_id == order_id)
                .order_by(InventoryEntryModel.created_at)
            )
            return [_entry_from_row(row) for row in result.scalars()]

    async def list_movements(
        self,
        product_id: str | None = None,
        movement_type: InventoryMovementType | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[InventoryEntry], int]:
        filters = []
        if product_id is not None:
            filters.append(InventoryEntryModel.product_id == product_id)
        if movement_type is not None:
            filters.append(InventoryEntryModel.type == movement_type.value)
        async with self._sessions() as session:
            total = await session.scalar(
                select(func.count()).select_from(InventoryEntryModel).where(*filters)
            )
            result = await session.execute(
                select(InventoryEntryModel)
                .where(*filters)
                .order_by(InventoryEntryModel.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            return [_entry_from_row(row) for row in result.scalars()], total or 0


class SqlSettingsRepository(_SqlRepository):
    """Single-row store settings table."""

    async def get(self) -> StoreSettings:
        async with self._sessions() as session:
            row = await session.get(StoreSettingsModel, 1)
            if row is None:
                return StoreSettings()
            return StoreSettings(
                site_name=row.site_name,
                site_url=row.site_url,
                checkout=dict(row.checkout or {}),
                payment=dict(row.payment or {}),
                notifications=dict(row.notifications or {}),
                coupon_enabled=row.coupon_enabled,
                shipping_enabled=row.shipping_enabled,
                tax_enabled=row.tax_enabled,
                default_tax_percentage=to_decimal(row.default_tax_percentage),
                abandoned_cart_enabled=row.abandoned_cart_enabled,
            )

    async def save(self, store_settings: StoreSettings) -> None:
        async with self._sessions() as session, session.begin():
            await session.merge(
                StoreSettingsModel(
                    id=1,
                    site_name=store_settings.site_name,
                    site_url=store_settings.site_url,
                    checkout=store_settings.checkout,
                    payment=store_settings.payment,
                    notifications=store_settings.notifications,
                    coupon_enabled=store_settings.coupon_enabled,
                    shipping_enabled=store_settings.shipping_enabled,
                    tax_enabled=store_settings.tax_enabled,
                    default_tax_percentage=store_settings.default_tax_percentage,
                    abandoned_cart_enabled=store_settings.abandoned_cart_enabled,
                )
            )


def create_sql_repositories(sessions: Sessions | None = None) -> Repositories:
    """Build SQL-backed repositories.

    Args:
        sessions: Session factory (defaults to the application engine).

    Returns:
        Repository bundle.
    """
    sessions = sessions or get_session_factory()
    return Repositories(
        products=SqlProductRepository(sessions),
        carts=SqlCartRepository(sessions),
        customers=SqlCustomerRepository(sessions),
        orders=SqlOrderRepository(sessions),
        coupons=SqlCouponRepository(sessions),
        shipping=SqlShippingRepository(sessions),
        inventory=SqlInventoryRepository(sessions),
        settings=SqlSettingsRepository(sessions),
    )
