"""
Order management API endpoints.

Buyer, manager and admin routes over the order service. Domain errors are
not caught here; the application-level handler in ``main`` maps them to
HTTP status codes and the common error body.
"""

from typing import Optional

from fastapi import APIRouter, Query, status

from garment_orders.api.deps import (
    AdminCaller,
    BuyerCaller,
    CurrentCaller,
    OrderServiceDep,
    StaffCaller,
)
from garment_orders.core.logging import get_logger
from garment_orders.schemas.orders import (
    ErrorResponse,
    OrderCreateRequest,
    OrderEnvelope,
    OrderListEnvelope,
    OrderRejectRequest,
    OrderStatsEnvelope,
    OrderStatusUpdateRequest,
    PaginatedOrderListEnvelope,
    TrackingCreateRequest,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/orders",
    tags=["orders"],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)


# Buyer routes


@router.post(
    "/",
    response_model=OrderEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Place order",
    description="Place an order and reserve its stock atomically",
)
async def create_order(
    request: OrderCreateRequest,
    caller: BuyerCaller,
    service: OrderServiceDep,
) -> OrderEnvelope:
    order = await service.create_order(
        caller,
        product_id=request.product_id,
        quantity=request.quantity,
        shipping_address=request.shipping_address,
        phone_number=request.phone_number,
        payment_type=request.payment_type,
        payment_method=request.payment_method,
        notes=request.notes,
        total_amount=request.total_amount,
    )
    return OrderEnvelope(message="Order placed successfully", order=order)


@router.get(
    "/my-orders",
    response_model=OrderListEnvelope,
    summary="List my orders",
)
async def get_my_orders(
    caller: BuyerCaller,
    service: OrderServiceDep,
) -> OrderListEnvelope:
    orders = await service.get_buyer_orders(caller)
    return OrderListEnvelope(count=len(orders), orders=orders)


# Admin routes


@router.get(
    "/admin/all",
    response_model=PaginatedOrderListEnvelope,
    summary="List all orders",
)
async def list_all_orders(
    caller: AdminCaller,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(
        None, alias="status", description="Filter by status, or 'all'"
    ),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum records to return"),
) -> PaginatedOrderListEnvelope:
    result = await service.list_orders(
        caller, status=status_filter, skip=skip, limit=limit
    )
    return PaginatedOrderListEnvelope(
        count=len(result["orders"]),
        orders=result["orders"],
        total=result["total"],
        skip=result["skip"],
        limit=result["limit"],
    )


@router.get(
    "/admin/stats",
    response_model=OrderStatsEnvelope,
    summary="Order statistics",
)
async def get_order_stats(
    caller: AdminCaller,
    service: OrderServiceDep,
) -> OrderStatsEnvelope:
    stats = await service.get_order_stats(caller)
    return OrderStatsEnvelope(stats=stats)


# Manager routes


@router.get(
    "/manager/pending",
    response_model=OrderListEnvelope,
    summary="Orders awaiting approval",
)
async def get_pending_orders(
    caller: StaffCaller,
    service: OrderServiceDep,
) -> OrderListEnvelope:
    orders = await service.get_pending_orders(caller)
    return OrderListEnvelope(count=len(orders), orders=orders)


@router.get(
    "/manager/approved",
    response_model=OrderListEnvelope,
    summary="Orders past approval",
)
async def get_approved_orders(
    caller: StaffCaller,
    service: OrderServiceDep,
) -> OrderListEnvelope:
    orders = await service.get_approved_orders(caller)
    return OrderListEnvelope(count=len(orders), orders=orders)


@router.put(
    "/{order_id}/approve",
    response_model=OrderEnvelope,
    summary="Approve order",
)
async def approve_order(
    order_id: str,
    caller: StaffCaller,
    service: OrderServiceDep,
) -> OrderEnvelope:
    order = await service.approve_order(order_id, caller)
    return OrderEnvelope(message="Order approved successfully", order=order)


@router.put(
    "/{order_id}/reject",
    response_model=OrderEnvelope,
    summary="Reject order",
)
async def reject_order(
    order_id: str,
    caller: StaffCaller,
    service: OrderServiceDep,
    request: Optional[OrderRejectRequest] = None,
) -> OrderEnvelope:
    reason = request.reason if request else None
    order = await service.reject_order(order_id, caller, reason=reason)
    return OrderEnvelope(message="Order rejected successfully", order=order)


@router.post(
    "/{order_id}/tracking",
    response_model=OrderEnvelope,
    summary="Add tracking entry",
)
async def add_tracking(
    order_id: str,
    request: TrackingCreateRequest,
    caller: StaffCaller,
    service: OrderServiceDep,
) -> OrderEnvelope:
    order = await service.add_tracking(
        order_id,
        caller,
        status=request.status,
        location=request.location,
        note=request.note,
    )
    return OrderEnvelope(message="Tracking updated successfully", order=order)


@router.put(
    "/{order_id}/status",
    response_model=OrderEnvelope,
    summary="Update order status",
    description="Move an order to a legal successor status",
)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdateRequest,
    caller: StaffCaller,
    service: OrderServiceDep,
) -> OrderEnvelope:
    order = await service.update_order_status(
        order_id, caller, new_status=request.status, note=request.note
    )
    return OrderEnvelope(message="Order status updated successfully", order=order)


# Shared routes


@router.get(
    "/{order_id}",
    response_model=OrderEnvelope,
    summary="Get order details",
)
async def get_order(
    order_id: str,
    caller: CurrentCaller,
    service: OrderServiceDep,
) -> OrderEnvelope:
    order = await service.get_order(order_id, caller)
    return OrderEnvelope(order=order)


@router.put(
    "/{order_id}/cancel",
    response_model=OrderEnvelope,
    summary="Cancel my order",
)
async def cancel_order(
    order_id: str,
    caller: CurrentCaller,
    service: OrderServiceDep,
) -> OrderEnvelope:
    order = await service.cancel_order(order_id, caller)
    logger.info("Order cancelled by buyer", order_id=order_id)
    return OrderEnvelope(message="Order cancelled successfully", order=order)
