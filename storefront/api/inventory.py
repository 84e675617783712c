"""Inventory API endpoints (admin).

- POST /admin/inventory/add-stock - receive stock into a product or variation SKU
- POST /admin/inventory/adjust - correct a product's stock by a signed delta
- GET /admin/inventory - paginated ledger entries across products
- GET /admin/inventory/{product_id} - current stock and recent ledger entries
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.api.middleware import AdminPrincipal
from storefront.api.schemas import (
    AddStockRequest,
    AdjustStockRequest,
    ErrorResponse,
    InventoryEntrySchema,
    InventoryHistoryResponse,
    InventoryListResponse,
    PaginationSchema,
    ProductStockSchema,
    StockAdjustmentResponse,
    SuccessResponse,
)
from storefront.application.inventory_service import (
    InventoryLedger,
    MovementPage,
    StockAdjustment,
    get_inventory_ledger,
)

router = APIRouter(
    prefix="/admin/inventory",
    tags=["Admin", "Inventory"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)

LedgerDep = Annotated[InventoryLedger, Depends(get_inventory_ledger)]


def adjustment_to_response(result: StockAdjustment) -> StockAdjustmentResponse:
    """Convert a ledger adjustment to its response schema."""
    return StockAdjustmentResponse(
        product=ProductStockSchema.from_product(result.product),
        new_stock=result.new_stock,
        entry=InventoryEntrySchema.from_entry(result.entry),
    )


def movements_to_response(page: MovementPage) -> InventoryListResponse:
    """Convert a page of ledger entries to its response schema."""
    return InventoryListResponse(
        movements=[
            InventoryEntrySchema.from_entry(e, product_name=page.product_names.get(e.product_id))
            for e in page.entries
        ],
        pagination=PaginationSchema(page=page.page, limit=page.limit, total=page.total, pages=page.pages),
    )


@router.post(
    "/add-stock",
    response_model=SuccessResponse[StockAdjustmentResponse],
    response_model_by_alias=True,
    summary="Add stock",
)
async def add_stock(
    body: AddStockRequest,
    _: AdminPrincipal,
    ledger: LedgerDep,
) -> SuccessResponse[StockAdjustmentResponse]:
    """Receive stock; quantities below 1 are raised to 1."""
    result = await ledger.add_stock(
        body.product_id,
        body.quantity,
        sku=body.sku,
        reason=body.reason,
        notes=body.notes,
    )
    target = f" to SKU {result.entry.sku}" if result.entry.sku else ""
    return SuccessResponse(
        data=adjustment_to_response(result),
        message=f"Added {result.entry.quantity} units{target}. New stock: {result.new_stock}",
    )


@router.post(
    "/adjust",
    response_model=SuccessResponse[StockAdjustmentResponse],
    response_model_by_alias=True,
    summary="Adjust stock",
)
async def adjust_stock(
    body: AdjustStockRequest,
    _: AdminPrincipal,
    ledger: LedgerDep,
) -> SuccessResponse[StockAdjustmentResponse]:
    """Correct the product-level balance; the result may not go negative."""
    result = await ledger.manual_adjust(
        body.product_id,
        body.quantity,
        reason=body.reason,
        notes=body.notes,
    )
    return SuccessResponse(
        data=adjustment_to_response(result),
        message=f"Stock adjusted. New stock: {result.new_stock}",
    )


@router.get(
    "",
    response_model=SuccessResponse[InventoryListResponse],
    response_model_by_alias=True,
    summary="List inventory movements",
)
async def list_inventory(
    _: AdminPrincipal,
    ledger: LedgerDep,
    product_id: str | None = Query(default=None, alias="productId", description="Only this product"),
    movement_type: str | None = Query(default=None, alias="type", description="in, out or adjustment"),
    page: int = Query(default=1, description="1-based page number"),
    limit: int = Query(default=20, description="Page size, at most 100"),
) -> SuccessResponse[InventoryListResponse]:
    """Newest-first ledger entries across products."""
    result = await ledger.list_movements(
        product_id=product_id,
        movement_type=movement_type,
        page=page,
        limit=limit,
    )
    return SuccessResponse(data=movements_to_response(result))


@router.get(
    "/{product_id}",
    response_model=SuccessResponse[InventoryHistoryResponse],
    response_model_by_alias=True,
    summary="Get inventory history",
)
async def get_inventory_history(
    product_id: str,
    _: AdminPrincipal,
    ledger: LedgerDep,
    limit: int = Query(default=50, ge=1, le=500, description="Maximum entries"),
) -> SuccessResponse[InventoryHistoryResponse]:
    """Current stock and newest-first ledger entries for a product."""
    history = await ledger.history(product_id, limit=limit)
    return SuccessResponse(
        data=InventoryHistoryResponse(
            product=ProductStockSchema.from_product(history.product),
            movements=[InventoryEntrySchema.from_entry(e) for e in history.entries],
        )
    )
