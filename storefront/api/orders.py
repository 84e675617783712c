"""Order API endpoints.

Provides endpoints for the order lifecycle:
- POST /orders - place an order from the caller's cart
- GET /orders - the caller's orders, newest first
- GET /orders/{id} - one of the caller's orders
- PATCH /admin/orders/{id}/status - move an order through its lifecycle (admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from storefront.api.middleware import AdminPrincipal, CurrentPrincipal
from storefront.api.schemas import (
    ErrorResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    PlaceOrderRequest,
    SuccessResponse,
)
from storefront.application.fulfillment_service import (
    OrderFulfillmentOrchestrator,
    PlaceOrderCommand,
    get_fulfillment_orchestrator,
)
from storefront.application.order_service import OrderService, get_order_service

router = APIRouter(tags=["Orders"])


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/orders",
    response_model=SuccessResponse[OrderResponse],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Place order",
    description="Turn the caller's cart into an order.",
)
async def place_order(
    body: PlaceOrderRequest,
    principal: CurrentPrincipal,
    orchestrator: Annotated[OrderFulfillmentOrchestrator, Depends(get_fulfillment_orchestrator)],
) -> SuccessResponse[OrderResponse]:
    """Place an order.

    Validates the payment method, address, cart, stock, shipping choice
    and payment proof before anything is written.

    Args:
        body: Order placement request.
        principal: Authenticated caller.
        orchestrator: Fulfillment orchestrator.

    Returns:
        The created order.
    """
    command = PlaceOrderCommand(
        user_id=principal.user_id,
        user_email=principal.email,
        user_phone=principal.phone,
        shipping_address=body.shipping_address.model_dump(by_alias=True),
        payment_method=body.payment_method,
        coupon_code=body.coupon_code,
        shipping_method_id=body.shipping_method_id,
        shipping_amount=body.shipping_amount,
        payment_proof=body.payment_proof,
    )
    order = await orchestrator.place_order(command)
    return SuccessResponse(data=OrderResponse.from_order(order), message="Order placed")


@router.get(
    "/orders",
    response_model=SuccessResponse[list[OrderResponse]],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={401: {"model": ErrorResponse}},
    summary="List my orders",
)
async def list_orders(
    principal: CurrentPrincipal,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> SuccessResponse[list[OrderResponse]]:
    """List the caller's orders, newest first."""
    orders = await service.list_for_user(principal.user_id)
    return SuccessResponse(data=[OrderResponse.from_order(o) for o in orders])


@router.get(
    "/orders/{order_id}",
    response_model=SuccessResponse[OrderResponse],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get order details",
)
async def get_order(
    order_id: str,
    principal: CurrentPrincipal,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> SuccessResponse[OrderResponse]:
    """Get one of the caller's orders.

    Orders owned by someone else are reported as not found.
    """
    order = await service.get_for_user(order_id, principal.user_id)
    return SuccessResponse(data=OrderResponse.from_order(order))


@router.patch(
    "/admin/orders/{order_id}/status",
    response_model=SuccessResponse[OrderResponse],
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update order status",
    tags=["Admin"],
)
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdateRequest,
    _: AdminPrincipal,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> SuccessResponse[OrderResponse]:
    """Move an order to a new status.

    The owner is notified of the change.

    Args:
        order_id: Order identifier.
        body: Target status.
        service: Order service.

    Returns:
        Updated order.
    """
    order = await service.update_status(order_id, body.status)
    return SuccessResponse(data=OrderResponse.from_order(order), message="Order status updated")
