"""Public order API routes: checkout submission and tracking."""

from fastapi import APIRouter, status

from src.api.deps import IntakeServiceDep, TrackingServiceDep, TrackRateLimit
from src.schemas.order import (
    OrderCreateRequest,
    OrderCreateResponse,
    PublicOrderView,
    TrackOrderRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="Validates a checkout submission, stores the order and emails a confirmation. Payment is arranged afterwards.",
)
async def create_order(data: OrderCreateRequest, service: IntakeServiceDep) -> OrderCreateResponse:
    """Create an order from the cart.

    Args:
        data: Checkout submission.
        service: Order intake service.

    Returns:
        OrderCreateResponse: Reference and id of the new order.
    """
    result = await service.create_order(data)
    return OrderCreateResponse(order_reference=result["reference"], order_id=result["order_id"])


@router.post(
    "/track",
    response_model=PublicOrderView,
    summary="Track an order",
    description="Returns the status summary of an order matching both reference and email.",
    responses={404: {"description": "No order matches the reference and email"}},
)
async def track_order(
    data: TrackOrderRequest,
    service: TrackingServiceDep,
    _: TrackRateLimit,
) -> PublicOrderView:
    """Look up an order's public status view.

    Args:
        data: Reference and email.
        service: Order tracking service.

    Returns:
        PublicOrderView: Status, history and item summary.
    """
    return await service.track(data.order_reference, data.email)
