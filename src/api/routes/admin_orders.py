"""Back office order API routes."""

from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import AdminAuth, AdminServiceDep
from src.models.order import OrderStatus
from src.schemas.order import (
    OrderListResponse,
    OrderReplyRequest,
    OrderReplyResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderUpdateRequest,
)

router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[AdminAuth])


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Newest first, optionally filtered by status and searched by reference, customer name or email.",
)
async def list_orders(
    service: AdminServiceDep,
    status: OrderStatus | None = Query(default=None, description="Filter by status"),
    search: str | None = Query(default=None, max_length=100, description="Search text"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> OrderListResponse:
    orders = await service.list_orders(status=status, search=search, limit=limit, offset=offset)
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders], count=len(orders))


@router.get(
    "/stats",
    response_model=OrderStatsResponse,
    summary="Order statistics",
)
async def order_stats(service: AdminServiceDep) -> OrderStatsResponse:
    return OrderStatsResponse(**await service.stats())


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    responses={404: {"description": "Order not found"}},
)
async def get_order(order_id: UUID, service: AdminServiceDep) -> OrderResponse:
    """Get the full order document.

    Raises:
        NotFoundError: 404 if the order does not exist.
    """
    return OrderResponse.model_validate(await service.get_order(order_id))


@router.put(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Update order",
    description="Changes status (recorded in the status history), admin notes and payment progress.",
    responses={404: {"description": "Order not found"}, 409: {"description": "Transition not allowed"}},
)
async def update_order(
    order_id: UUID,
    data: OrderUpdateRequest,
    service: AdminServiceDep,
) -> OrderResponse:
    """Apply an admin update and return the updated order."""
    return OrderResponse.model_validate(await service.update_order(order_id, data))


@router.post(
    "/{order_id}/reply",
    response_model=OrderReplyResponse,
    summary="Email the customer",
    description="Sends a free-form message, e.g. payment details, with optional attachments. Does not change the order.",
    responses={404: {"description": "Order not found"}, 500: {"description": "Email could not be sent"}},
)
async def reply_to_order(
    order_id: UUID,
    data: OrderReplyRequest,
    service: AdminServiceDep,
) -> OrderReplyResponse:
    await service.send_reply(order_id, data)
    return OrderReplyResponse(success=True)
