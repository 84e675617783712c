"""Coupon API endpoints.

- POST /coupons/validate - preview a coupon's discount for a cart total
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from storefront.api.middleware import CurrentPrincipal
from storefront.api.schemas import (
    CouponValidateRequest,
    CouponValidateResponse,
    ErrorResponse,
    SuccessResponse,
)
from storefront.application.pricing_service import PricingService, get_pricing_service

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post(
    "/validate",
    response_model=SuccessResponse[CouponValidateResponse],
    response_model_by_alias=True,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Validate coupon",
)
async def validate_coupon(
    body: CouponValidateRequest,
    _: CurrentPrincipal,
    service: Annotated[PricingService, Depends(get_pricing_service)],
) -> SuccessResponse[CouponValidateResponse]:
    """Check a coupon and report the discount it would grant.

    Usage is not consumed; that happens when the order is placed.
    """
    application = await service.preview_coupon(body.code, body.order_total)
    coupon = application.coupon
    return SuccessResponse(
        data=CouponValidateResponse(
            code=coupon.code,
            discount_type=coupon.discount_type.value,
            discount_value=float(coupon.discount_value),
            discount=float(application.discount),
        )
    )
