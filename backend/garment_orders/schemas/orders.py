"""
Order Pydantic schemas for API request/response validation.

Request models are deliberately permissive about types (quantity may arrive
as a string from form posts); the order service owns the business
validation so its error messages are the ones clients see.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from garment_orders.services.orders.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)


class OrderCreateRequest(BaseModel):
    """Request schema for placing a new order."""

    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: Optional[str] = Field(None, description="Product to order")
    quantity: Optional[Union[int, str]] = Field(None, description="Units to order")
    shipping_address: Optional[str] = Field(
        None,
        max_length=500,
        description="Delivery address",
    )
    phone_number: Optional[str] = Field(
        None,
        max_length=32,
        description="Contact phone number",
    )
    notes: Optional[str] = Field(
        None,
        max_length=1000,
        description="Order notes",
    )
    payment_method: Optional[str] = Field(
        PaymentMethod.COD.value,
        description="cod, stripe or payfast",
    )
    payment_type: Optional[str] = Field(
        None,
        description="cashOnDelivery, advancePayment or partialPayment",
    )
    total_amount: Optional[Union[Decimal, str]] = Field(
        None,
        description="Total override; computed from price x quantity when absent",
    )


class OrderRejectRequest(BaseModel):
    """Request schema for rejecting an order."""

    reason: Optional[str] = Field(None, max_length=500, description="Rejection reason")


class OrderStatusUpdateRequest(BaseModel):
    """Request schema for moving an order to a new status."""

    status: Optional[str] = Field(None, description="Target order status")
    note: Optional[str] = Field(None, max_length=500, description="Tracking note")

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


class TrackingCreateRequest(BaseModel):
    """Request schema for appending a tracking entry."""

    status: Optional[str] = Field(None, max_length=100, description="Tracking label")
    location: Optional[str] = Field(None, max_length=200, description="Event location")
    note: Optional[str] = Field(None, max_length=1000, description="Tracking note")


class TrackingEntryResponse(BaseModel):
    """One entry of an order's tracking log."""

    status: str
    location: str
    note: str
    timestamp: datetime


class OrderResponse(BaseModel):
    """Complete order response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    buyer_id: UUID
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    shipping_address: str
    phone_number: str
    notes: str
    payment_method: PaymentMethod
    payment_type: PaymentType
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    status: OrderStatus
    tracking: list[TrackingEntryResponse]
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class OrderEnvelope(BaseModel):
    """Single-order response wrapper."""

    success: bool = True
    message: Optional[str] = None
    order: OrderResponse


class OrderListEnvelope(BaseModel):
    """Order list response wrapper."""

    success: bool = True
    count: int
    orders: list[OrderResponse]


class PaginatedOrderListEnvelope(OrderListEnvelope):
    """Admin order list with total count for paging."""

    total: int
    skip: int
    limit: int


class StatusBucket(BaseModel):
    count: int
    revenue: float


class DailyOrders(BaseModel):
    date: str
    count: int
    revenue: float


class OrderStats(BaseModel):
    """Aggregate order statistics."""

    total_orders: int
    total_revenue: float
    by_status: dict[str, StatusBucket]
    daily_orders: list[DailyOrders]
    timestamp: datetime


class OrderStatsEnvelope(BaseModel):
    success: bool = True
    stats: OrderStats


class DashboardStats(BaseModel):
    total_products: int
    total_orders: int


class DashboardStatsEnvelope(BaseModel):
    success: bool = True
    stats: DashboardStats


class ErrorResponse(BaseModel):
    """Error body returned for every domain failure."""

    success: bool = False
    error: str
    message: str
    request_id: Optional[str] = None
