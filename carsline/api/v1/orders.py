"""
Order management API endpoints.

This module implements the FastAPI router for the workshop order lifecycle:
opening orders, cancelling and delivering them, the advisor work queue and
the vehicle service history. Business rules live in OrderService; domain
errors propagate to the application's exception handlers.
"""

from fastapi import APIRouter, Query, status

from carsline.api.deps import AdvisorId, OrderServiceDep
from carsline.schemas.orders import (
    OpenOrderListResponse,
    OrderCreatedResponse,
    OrderCreateRequest,
    OrderStatusResponse,
    VehicleHistoryResponse,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open new order",
    description="Open an order with its sequential number and cost snapshot",
)
async def create_order(
    payload: OrderCreateRequest,
    advisor_id: AdvisorId,
    service: OrderServiceDep,
) -> OrderCreatedResponse:
    """
    Open a new order for the calling advisor.

    Raises:
        ValidationError: 422 if the order data is malformed
        ConflictError: 409 if no order number could be assigned
    """
    result = await service.create_order(
        order_type=payload.order_type,
        client_id=payload.client_id,
        vehicle_id=payload.vehicle_id,
        advisor_id=advisor_id,
        current_mileage=payload.current_mileage,
        promised_at=payload.promised_at,
        service_type_id=payload.service_type_id,
        advisor_notes=payload.advisor_notes,
        extra_service_ids=payload.extra_service_ids,
    )
    return OrderCreatedResponse(**result)


@router.put(
    "/{order_id}/cancel",
    response_model=OrderStatusResponse,
    summary="Cancel order",
)
async def cancel_order(order_id: int, service: OrderServiceDep) -> OrderStatusResponse:
    result = await service.cancel_order(order_id)
    return OrderStatusResponse(
        message=f"Order {result['order_number']} cancelled",
        **result,
    )


@router.put(
    "/{order_id}/deliver",
    response_model=OrderStatusResponse,
    summary="Deliver order",
    description="Hand the vehicle back and record its service history",
)
async def deliver_order(order_id: int, service: OrderServiceDep) -> OrderStatusResponse:
    result = await service.deliver_order(order_id)
    return OrderStatusResponse(
        message=f"Order {result['order_number']} delivered",
        **result,
    )


@router.get(
    "/advisor/{order_type}",
    response_model=OpenOrderListResponse,
    summary="Advisor work queue",
    description="Open orders of one type for the calling advisor, by promised time",
)
async def list_advisor_orders(
    order_type: int,
    advisor_id: AdvisorId,
    service: OrderServiceDep,
) -> OpenOrderListResponse:
    orders = await service.list_open_orders(advisor_id, order_type)
    return OpenOrderListResponse(orders=orders, total=len(orders))


@router.get(
    "/vehicle-history/{vehicle_id}",
    response_model=VehicleHistoryResponse,
    summary="Vehicle service history",
)
async def get_vehicle_history(
    vehicle_id: int,
    service: OrderServiceDep,
    months: int = Query(6, ge=1, le=120, description="Months to look back"),
) -> VehicleHistoryResponse:
    history = await service.get_vehicle_history(vehicle_id, months=months)
    return VehicleHistoryResponse(**history)
