"""Shipping API endpoints.

- GET /shipping/options - shipping methods for an address, priced for the cart
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.api.schemas import ShippingOptionsResponse, SuccessResponse
from storefront.application.pricing_service import PricingService, get_pricing_service

router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.get(
    "/options",
    response_model=SuccessResponse[ShippingOptionsResponse],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Get shipping options",
    description="Resolve the shipping zone for an address and price its methods.",
)
async def get_shipping_options(
    service: Annotated[PricingService, Depends(get_pricing_service)],
    country: str = Query(default=""),
    state: str = Query(default=""),
    zip_code: str = Query(default="", alias="zip"),
    subtotal: str | None = Query(default=None, description="Cart subtotal"),
    item_count: str | None = Query(default=None, alias="itemCount", description="Units in cart"),
) -> SuccessResponse[ShippingOptionsResponse]:
    """Get shipping options for an address.

    Falls back to zero shipping when no zone or method applies.
    Non-numeric subtotal or item count are treated as zero.
    """
    options = await service.shipping_options(
        country=country,
        state=state,
        zip_code=zip_code,
        subtotal=subtotal,
        item_count=item_count,
    )
    return SuccessResponse(data=ShippingOptionsResponse.from_options(options))
