"""Inventory ledger service.

Every change to a stock balance is paired with exactly one immutable
ledger entry whose previous/new values match the change. Adjustments
to the same product are serialized with an in-process lock that is
dropped once no caller holds or awaits it; across processes the
read-validate-write is not atomic.
"""

import asyncio
import copy
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog

from storefront.domain.entities import InventoryEntry, Order, Product, ProductVariation
from storefront.domain.exceptions import (
    InsufficientStockError,
    InvalidSkuError,
    ProductNotFoundError,
    ValidationError,
)
from storefront.domain.value_objects import InventoryMovementType
from storefront.infrastructure.cache import ProductCache, get_product_cache
from storefront.infrastructure.repositories import Repositories, get_repositories

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100

DEFAULT_REASONS = {
    InventoryMovementType.IN: "Stock added",
    InventoryMovementType.OUT: "Order",
    InventoryMovementType.ADJUSTMENT: "Manual adjustment",
}


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class StockAdjustment:
    """Result of a ledger adjustment."""

    product: Product
    new_stock: int
    entry: InventoryEntry


@dataclass
class StockHistory:
    """Ledger entries for a product plus its current stock."""

    product: Product
    entries: list[InventoryEntry]


@dataclass
class MovementPage:
    """One page of ledger entries across products."""

    entries: list[InventoryEntry]
    total: int
    page: int
    limit: int
    product_names: dict[str, str] = field(default_factory=dict)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


# ============================================================================
# Inventory Ledger
# ============================================================================


class InventoryLedger:
    """Adjusts stock balances and appends ledger entries."""

    def __init__(
        self,
        repositories: Repositories | None = None,
        cache: ProductCache | None = None,
    ) -> None:
        """Initialize ledger.

        Args:
            repositories: Repository bundle (uses global if not provided).
            cache: Product cache (uses global if not provided).
        """
        self.repos = repositories or get_repositories()
        self.cache = cache or get_product_cache()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _product_lock(self, product_id: str) -> AsyncIterator[None]:
        """Serialize adjustments to one product."""
        lock = self._locks.setdefault(product_id, asyncio.Lock())
        self._lock_users[product_id] = self._lock_users.get(product_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[product_id] -= 1
            if not self._lock_users[product_id]:
                del self._lock_users[product_id]
                del self._locks[product_id]

    @staticmethod
    def _resolve_target(
        product: Product, sku: str | None, managed_only: bool
    ) -> ProductVariation | None:
        """Pick the stock counter a SKU addresses.

        Returns None for the product-level counter.

        Raises:
            InvalidSkuError: SKU matches neither the product nor a variation.
        """
        if not sku:
            return None
        if product.sku == sku and (product.is_inventory_managed or not managed_only):
            return None
        for variation in product.variations:
            if variation.sku == sku and (variation.is_inventory_managed or not managed_only):
                return variation
        raise InvalidSkuError(product.id, sku)

    async def adjust(
        self,
        product_id: str,
        quantity_delta: int,
        movement_type: InventoryMovementType,
        reason: str = "",
        reference_order_id: str | None = None,
        sku: str | None = None,
        notes: str = "",
        managed_only: bool = False,
    ) -> StockAdjustment:
        """Apply a signed stock change and record it.

        Args:
            product_id: Product to adjust.
            quantity_delta: Signed change.
            movement_type: Ledger entry type.
            reason: Entry reason (type default when blank).
            reference_order_id: Order that caused the change.
            sku: Product or variation SKU; product-level when omitted.
            notes: Free-form notes.
            managed_only: Only match inventory-managed SKUs.

        Returns:
            New balance and the appended entry.

        Raises:
            ProductNotFoundError: Unknown product.
            InvalidSkuError: SKU not found on the product.
            InsufficientStockError: Change would go below zero; nothing written.
        """
        sku = (sku or "").strip() or None
        async with self._product_lock(product_id):
            stored = await self.repos.products.get(product_id)
            if stored is None:
                raise ProductNotFoundError(product_id)
            product = copy.deepcopy(stored)

            variation = self._resolve_target(product, sku, managed_only)
            previous = variation.stock if variation is not None else product.stock
            new_stock = previous + quantity_delta
            if new_stock < 0:
                raise InsufficientStockError(
                    product_id,
                    available=previous,
                    requested=abs(quantity_delta),
                    name=product.name,
                )

            if variation is not None:
                variation.stock = new_stock
            else:
                product.stock = new_stock

            entry = InventoryEntry(
                product_id=product_id,
                sku=sku or "",
                quantity=quantity_delta,
                type=movement_type,
                reason=reason or DEFAULT_REASONS[movement_type],
                previous_stock=previous,
                new_stock=new_stock,
                reference_order_id=reference_order_id,
                notes=notes or "",
            )
            await self.repos.products.apply_stock_change(product, entry)

        await self.cache.invalidate_product(product_id)
        logger.info(
            "inventory_adjusted",
            product_id=product_id,
            sku=sku,
            delta=quantity_delta,
            type=movement_type.value,
            previous_stock=previous,
            new_stock=new_stock,
            reference_order_id=reference_order_id,
        )
        return StockAdjustment(product=product, new_stock=new_stock, entry=entry)

    async def add_stock(
        self,
        product_id: str,
        quantity: Any,
        sku: str | None = None,
        reason: str = "",
        notes: str = "",
    ) -> StockAdjustment:
        """Receive stock, optionally into a specific SKU.

        Quantity is coerced to at least 1.
        """
        try:
            qty = max(1, int(quantity))
        except (TypeError, ValueError):
            qty = 1
        return await self.adjust(
            product_id,
            qty,
            InventoryMovementType.IN,
            reason=reason or DEFAULT_REASONS[InventoryMovementType.IN],
            sku=sku,
            notes=notes,
            managed_only=True,
        )

    async def manual_adjust(
        self,
        product_id: str,
        quantity: Any,
        reason: str = "",
        notes: str = "",
    ) -> StockAdjustment:
        """Correct the product-level balance by a non-zero delta.

        Raises:
            ValidationError: Zero or non-numeric quantity.
        """
        try:
            qty = int(quantity)
        except (TypeError, ValueError):
            qty = 0
        if qty == 0:
            raise ValidationError("Quantity cannot be zero", details={"quantity": quantity})
        return await self.adjust(
            product_id,
            qty,
            InventoryMovementType.ADJUSTMENT,
            reason=reason or DEFAULT_REASONS[InventoryMovementType.ADJUSTMENT],
            notes=notes,
        )

    async def deduct_for_order(self, order: Order) -> list[StockAdjustment]:
        """Record one ``out`` entry per inventory-managed order line.

        Lines whose product vanished or is not stock-managed are skipped.
        A failing line is logged and does not stop the others.

        Returns:
            Adjustments that were applied.
        """
        applied: list[StockAdjustment] = []
        for item in order.items:
            product = await self.repos.products.get(item.product_id)
            if product is None:
                logger.warning("inventory_deduct_product_missing", order_id=order.id, product_id=item.product_id)
                continue
            variation = product.find_variation(item.variation_sku)
            managed = variation.is_inventory_managed if variation else product.is_inventory_managed
            if not managed:
                continue
            try:
                applied.append(
                    await self.adjust(
                        item.product_id,
                        -item.quantity,
                        InventoryMovementType.OUT,
                        reason=DEFAULT_REASONS[InventoryMovementType.OUT],
                        reference_order_id=order.id,
                        sku=variation.sku if variation else None,
                    )
                )
            except (InsufficientStockError, InvalidSkuError, ProductNotFoundError) as e:
                logger.error(
                    "inventory_deduct_failed",
                    order_id=order.id,
                    product_id=item.product_id,
                    error=e.message,
                )
        return applied

    async def history(self, product_id: str, limit: int = 50) -> StockHistory:
        """Newest-first ledger entries for a product.

        Raises:
            ProductNotFoundError: Unknown product.
        """
        product = await self.repos.products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        entries = await self.repos.inventory.list_for_product(product_id, limit=limit)
        return StockHistory(product=product, entries=entries)

    async def list_movements(
        self,
        product_id: str | None = None,
        movement_type: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> MovementPage:
        """Newest-first ledger entries, optionally for one product or type.

        Unknown movement types are ignored. ``page`` is raised to 1 and
        ``limit`` is clamped to 1..100.
        """
        page = max(1, page)
        limit = min(MAX_PAGE_SIZE, max(1, limit))
        try:
            kind = InventoryMovementType(movement_type) if movement_type else None
        except ValueError:
            kind = None
        entries, total = await self.repos.inventory.list_movements(
            product_id=product_id or None,
            movement_type=kind,
            offset=(page - 1) * limit,
            limit=limit,
        )
        products = await self.repos.products.get_many(sorted({e.product_id for e in entries}))
        return MovementPage(
            entries=entries,
            total=total,
            page=page,
            limit=limit,
            product_names={pid: p.name for pid, p in products.items()},
        )


# Global ledger instance
_inventory_ledger: InventoryLedger | None = None


def get_inventory_ledger() -> InventoryLedger:
    """Get inventory ledger singleton."""
    global _inventory_ledger
    if _inventory_ledger is None:
        _inventory_ledger = InventoryLedger()
    return _inventory_ledger


def reset_inventory_ledger() -> None:
    """Reset inventory ledger (for testing)."""
    global _inventory_ledger
    _inventory_ledger = None
