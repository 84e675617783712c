"""Payment API endpoints.

Provider order creation for the client checkout widgets, and
verification of payments the client reports back:
- POST /payment/create-razorpay-order
- POST /payment/create-cashfree-session
- POST /payment/verify-razorpay
- POST /payment/verify-cashfree
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from storefront.api.middleware import CurrentPrincipal
from storefront.api.schemas import (
    CashfreeSessionResponse,
    CreateCashfreeSessionRequest,
    CreateRazorpayOrderRequest,
    ErrorResponse,
    RazorpayOrderResponse,
    SuccessResponse,
    VerifyCashfreeRequest,
    VerifyCashfreeResponse,
    VerifyRazorpayRequest,
    VerifyRazorpayResponse,
)
from storefront.application.payment_service import PaymentService, get_payment_service

router = APIRouter(
    prefix="/payment",
    tags=["Payments"],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)

PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


@router.post(
    "/create-razorpay-order",
    response_model=SuccessResponse[RazorpayOrderResponse],
    response_model_by_alias=True,
    summary="Create Razorpay order",
)
async def create_razorpay_order(
    body: CreateRazorpayOrderRequest,
    _: CurrentPrincipal,
    service: PaymentServiceDep,
) -> SuccessResponse[RazorpayOrderResponse]:
    """Create a Razorpay order; the amount is in major units and at least 1."""
    handle = await service.create_razorpay_order(body.amount, body.currency, body.receipt)
    return SuccessResponse(
        data=RazorpayOrderResponse(
            order_id=handle.order_id,
            key_id=handle.key_id,
            amount_in_paise=handle.amount_minor or 0,
        )
    )


@router.post(
    "/create-cashfree-session",
    response_model=SuccessResponse[CashfreeSessionResponse],
    response_model_by_alias=True,
    summary="Create Cashfree payment session",
)
async def create_cashfree_session(
    body: CreateCashfreeSessionRequest,
    _: CurrentPrincipal,
    service: PaymentServiceDep,
) -> SuccessResponse[CashfreeSessionResponse]:
    """Create a Cashfree order under the caller-chosen order id."""
    handle = await service.create_cashfree_session(
        body.order_id,
        body.amount,
        currency=body.currency,
        customer_details=body.customer_details,
        return_url=body.return_url,
    )
    return SuccessResponse(
        data=CashfreeSessionResponse(
            order_id=handle.order_id,
            payment_session_id=handle.payment_session_id,
        )
    )


@router.post(
    "/verify-razorpay",
    response_model=SuccessResponse[VerifyRazorpayResponse],
    response_model_by_alias=True,
    summary="Verify Razorpay payment",
)
async def verify_razorpay(
    body: VerifyRazorpayRequest,
    _: CurrentPrincipal,
    service: PaymentServiceDep,
) -> SuccessResponse[VerifyRazorpayResponse]:
    """Check a Razorpay payment signature.

    An invalid signature is a normal result (``valid: false``), not an
    error response.
    """
    result = await service.verify_razorpay(
        body.razorpay_order_id,
        body.razorpay_payment_id,
        body.signature,
        amount=body.amount,
    )
    return SuccessResponse(data=VerifyRazorpayResponse(valid=result.valid, message=result.message or None))


@router.post(
    "/verify-cashfree",
    response_model=SuccessResponse[VerifyCashfreeResponse],
    response_model_by_alias=True,
    summary="Verify Cashfree payment",
)
async def verify_cashfree(
    body: VerifyCashfreeRequest,
    _: CurrentPrincipal,
    service: PaymentServiceDep,
) -> SuccessResponse[VerifyCashfreeResponse]:
    """Report whether a Cashfree order is paid."""
    result = await service.verify_cashfree(body.order_id)
    return SuccessResponse(
        data=VerifyCashfreeResponse(
            paid=result.valid,
            order_status=result.status,
            amount=None if result.amount is None else float(result.amount),
        )
    )
