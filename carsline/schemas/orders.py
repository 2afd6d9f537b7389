"""
Order Pydantic schemas for API request/response validation.

This module defines the request body for opening an order and the
response bodies of the order lifecycle and history endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from carsline.services.orders.enums import OrderStatus


class OrderCreateRequest(BaseModel):
    """Request body for opening a workshop order."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "order_type": 1,
                "client_id": 15,
                "vehicle_id": 42,
                "service_type_id": 3,
                "current_mileage": 45210,
                "promised_at": "2026-10-21T17:00:00Z",
                "advisor_notes": "Client reports noise on front brakes",
                "extra_service_ids": [2, 7],
            }
        },
    )

    order_type: int = Field(
        ...,
        description="Order type code, 1=service 2=diagnosis 3=repair 4=warranty, others numbered under ORD",
    )
    client_id: int = Field(..., gt=0, description="Client identifier")
    vehicle_id: int = Field(..., gt=0, description="Vehicle identifier")
    service_type_id: Optional[int] = Field(None, gt=0, description="Base service from the catalog")
    current_mileage: int = Field(..., ge=0, description="Odometer reading at reception")
    promised_at: datetime = Field(..., description="Promised delivery date and time")
    advisor_notes: Optional[str] = Field(None, max_length=2000, description="Advisor notes")
    extra_service_ids: list[int] = Field(default_factory=list, description="Extra services to apply")

    @field_validator("extra_service_ids")
    @classmethod
    def validate_extra_service_ids(cls, v: list[int]) -> list[int]:
        """Reject non-positive extra service ids."""
        if any(extra_id <= 0 for extra_id in v):
            raise ValueError("Extra service ids must be positive")
        return v


class OrderCreatedResponse(BaseModel):
    """Response for a newly opened order."""

    success: bool = True
    order_id: int
    order_number: str
    total_cost: Decimal


class OrderStatusResponse(BaseModel):
    """Response for a cancel or deliver operation."""

    success: bool = True
    message: str
    order_id: int
    order_number: str
    status: OrderStatus
    active: bool
    delivered_at: Optional[datetime] = None
    service_history_id: Optional[int] = None


class OpenOrderResponse(BaseModel):
    """Order on an advisor's work queue."""

    id: int
    order_number: str
    order_type: int
    order_type_name: str
    client_id: int
    vehicle_id: int
    service_type: Optional[str] = None
    promised_at: datetime
    process_started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_cost: Decimal
    status: OrderStatus


class OpenOrderListResponse(BaseModel):
    success: bool = True
    orders: list[OpenOrderResponse]
    total: int


class HistoryExtraServiceResponse(BaseModel):
    name: str
    price: Decimal


class HistoryEntryResponse(BaseModel):
    """One delivered order in a vehicle history."""

    order_number: str
    service_date: datetime
    service_type: str
    mileage: int
    total_cost: Decimal
    extra_services: list[HistoryExtraServiceResponse]
    advisor_notes: str


class VehicleHistoryResponse(BaseModel):
    """Delivered orders of a vehicle with summary figures."""

    success: bool = True
    vehicle_id: int
    months: int
    history: list[HistoryEntryResponse]
    total_services: int
    average_cost: Decimal
    last_mileage: int
    last_service_date: Optional[datetime] = None
