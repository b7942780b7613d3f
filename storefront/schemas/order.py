"""
==============================================================================
Order Schemas Module
==============================================================================

Request and response schemas for checkout and order management.

==============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.db.models import FulfillmentStatus, Order, PaymentStatus, Section
from storefront.schemas.common import LowerEmail
from storefront.utils.pricing import format_price


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """One cart line."""
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    variant_id: Optional[str] = None


class OrderCustomerInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: LowerEmail
    phone: Optional[str] = Field(default=None, max_length=50)


class ShippingAddressInput(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[LowerEmail] = None
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)


class OrderCreate(BaseModel):
    """
    Checkout request.

    Prices are never taken from the client; they are read from the
    catalog when the order is created.
    """
    customer: OrderCustomerInput
    items: List[OrderItemCreate]
    section: Optional[Section] = None
    shipping_address: Optional[ShippingAddressInput] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    tags: List[str] = Field(default_factory=list)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    discount_code: Optional[str] = Field(default=None, max_length=50)


class OrderUpdate(BaseModel):
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    tags: Optional[List[str]] = None
    payment_method: Optional[str] = Field(default=None, max_length=50)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class FulfillmentStatusUpdate(BaseModel):
    fulfillment_status: FulfillmentStatus


class OrderFilters(BaseModel):
    """List / export filters, built from query parameters."""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)
    search: Optional[str] = None
    section: Optional[Section] = None
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    customer_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: str = "order_date"
    sort_order: str = "desc"

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: str) -> str:
        allowed = {"order_date", "created_at", "total", "order_number"}
        if v not in allowed:
            raise ValueError(f"sort_by must be one of: {', '.join(sorted(allowed))}")
        return v

    @field_validator("sort_order")
    @classmethod
    def validate_sort_order(cls, v: str) -> str:
        v = v.lower()
        if v not in ("asc", "desc"):
            raise ValueError("sort_order must be asc or desc")
        return v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemDetail(BaseModel):
    id: str
    product_id: Optional[str] = None
    product_name: str
    sku: Optional[str] = None
    variant_id: Optional[str] = None
    quantity: int
    price: float
    total: float

    class Config:
        from_attributes = True


class ShippingAddressDetail(BaseModel):
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: str
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str

    class Config:
        from_attributes = True


class OrderCustomer(BaseModel):
    id: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None


class OrderDetail(BaseModel):
    """Full order representation."""
    id: str
    order_number: str
    customer: OrderCustomer
    date: datetime
    section: Section
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    items: List[OrderItemDetail]
    items_count: int
    subtotal: float
    tax: float
    discount: float
    shipping_cost: float
    total: float
    total_formatted: str
    currency: str
    shipping_address: Optional[ShippingAddressDetail] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    payment_method: Optional[str] = None
    guest_order: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, order: Order) -> "OrderDetail":
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer=OrderCustomer(
                id=order.customer_id,
                name=order.customer_name,
                email=order.customer_email,
                phone=order.customer_phone,
            ),
            date=order.order_date,
            section=order.section,
            payment_status=order.payment_status,
            fulfillment_status=order.fulfillment_status,
            items=[OrderItemDetail.model_validate(item) for item in order.items],
            items_count=order.items_count,
            subtotal=order.subtotal,
            tax=order.tax,
            discount=order.discount,
            shipping_cost=order.shipping_cost,
            total=order.total,
            total_formatted=format_price(order.total, order.currency),
            currency=order.currency,
            shipping_address=(
                ShippingAddressDetail.model_validate(order.shipping_address)
                if order.shipping_address else None
            ),
            notes=order.notes,
            tags=list(order.tags or []),
            payment_method=order.payment_method,
            guest_order=order.guest_order,
            created_by=order.created_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderResponse(BaseModel):
    success: bool = Field(default=True)
    message: Optional[str] = None
    order: OrderDetail


class OrderListResponse(BaseModel):
    success: bool = Field(default=True)
    orders: List[OrderDetail]
    pagination: Dict[str, Any]


class OrderStatsResponse(BaseModel):
    success: bool = Field(default=True)
    overview: Dict[str, float]
    payment_status: Dict[str, int]
    fulfillment_status: Dict[str, int]
    by_section: Dict[str, Dict[str, float]]


# =============================================================================
# CUSTOMER / GUEST VIEWS
# =============================================================================

class OrderItemPreview(BaseModel):
    product_name: str
    quantity: int
    price: float

    class Config:
        from_attributes = True


class CustomerOrderSummary(BaseModel):
    """Order row in a customer's history, with the first few items."""
    id: str
    order_number: str
    date: datetime
    section: Section
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    items_count: int
    items_preview: List[OrderItemPreview]
    total: float
    total_formatted: str
    currency: str
    shipping_address: Optional[ShippingAddressDetail] = None

    @classmethod
    def from_model(cls, order: Order, preview_size: int = 3) -> "CustomerOrderSummary":
        return cls(
            id=order.id,
            order_number=order.order_number,
            date=order.order_date,
            section=order.section,
            payment_status=order.payment_status,
            fulfillment_status=order.fulfillment_status,
            items_count=order.items_count,
            items_preview=[
                OrderItemPreview.model_validate(item) for item in order.items[:preview_size]
            ],
            total=order.total,
            total_formatted=format_price(order.total, order.currency),
            currency=order.currency,
            shipping_address=(
                ShippingAddressDetail.model_validate(order.shipping_address)
                if order.shipping_address else None
            ),
        )


class CustomerOrderListResponse(BaseModel):
    success: bool = Field(default=True)
    orders: List[CustomerOrderSummary]
    pagination: Dict[str, Any]


class GuestOrderLookupResponse(BaseModel):
    success: bool = Field(default=True)
    order: OrderDetail
    has_account: bool
    message: Optional[str] = None
