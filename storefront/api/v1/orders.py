"""
==============================================================================
Order Endpoints
==============================================================================

Checkout (open to guests and customers) and order management (staff).

Managers with an assigned section only see and change orders of that
section.

==============================================================================
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from storefront.core.dependencies import (
    AuthenticationManager,
    get_current_customer_optional,
    get_current_user,
)
from storefront.core.security import get_security_manager
from storefront.db.database import get_db
from storefront.db.models import (
    Customer,
    FulfillmentStatus,
    Order,
    PaymentStatus,
    Section,
    User,
    UserRole,
)
from storefront.schemas.common import MessageResponse
from storefront.schemas.order import (
    FulfillmentStatusUpdate,
    OrderCreate,
    OrderDetail,
    OrderFilters,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderUpdate,
    PaymentStatusUpdate,
)
from storefront.services.cache_service import CacheService, get_cache_service
from storefront.services.order_service import OrderService
from storefront.utils.clock import utc_now


router = APIRouter(prefix="/orders", tags=["Orders"])


def _scoped_section(user: User, section: Optional[Section]) -> Optional[Section]:
    """Managers are pinned to their section whatever they ask for."""
    if user.is_manager and user.assigned_section:
        return user.assigned_section
    return section


class OrderController:
    """Controller for order operations."""

    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self._service = OrderService(db, cache)

    def _get_for(self, user: User, order_id: str, include_deleted: bool = False) -> Order:
        order = self._service.get_order(order_id, include_deleted=include_deleted)
        AuthenticationManager.require_section(user, order.section)
        return order

    def create(self, request: OrderCreate, customer: Optional[Customer]) -> OrderResponse:
        order = self._service.create_order(request, customer=customer)
        return OrderResponse(
            message="Order created successfully",
            order=OrderDetail.from_model(order)
        )

    def list(self, user: User, filters: OrderFilters) -> OrderListResponse:
        filters.section = _scoped_section(user, filters.section)
        orders, pagination = self._service.list_orders(filters)
        return OrderListResponse(
            orders=[OrderDetail.from_model(order) for order in orders],
            pagination=pagination
        )

    def stats(
        self,
        user: User,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
        section: Optional[Section]
    ) -> OrderStatsResponse:
        stats = self._service.get_order_stats(
            date_from=date_from,
            date_to=date_to,
            section=_scoped_section(user, section)
        )
        return OrderStatsResponse(**stats)

    def export(self, user: User, filters: OrderFilters) -> Response:
        filters.section = _scoped_section(user, filters.section)
        content = self._service.export_orders_csv(filters)
        filename = f"orders-{utc_now().strftime('%Y-%m-%d')}.csv"
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    def get(self, user: User, order_id: str) -> OrderResponse:
        return OrderResponse(order=OrderDetail.from_model(self._get_for(user, order_id)))

    def get_by_number(self, user: User, order_number: str) -> OrderResponse:
        order = self._service.get_order_by_number(order_number)
        AuthenticationManager.require_section(user, order.section)
        return OrderResponse(order=OrderDetail.from_model(order))

    def update(self, user: User, order_id: str, request: OrderUpdate) -> OrderResponse:
        self._get_for(user, order_id)
        order = self._service.update_order(order_id, request)
        return OrderResponse(message="Order updated successfully", order=OrderDetail.from_model(order))

    def update_payment(self, user: User, order_id: str, request: PaymentStatusUpdate) -> OrderResponse:
        self._get_for(user, order_id)
        order = self._service.update_payment_status(order_id, request.payment_status)
        return OrderResponse(
            message="Payment status updated successfully",
            order=OrderDetail.from_model(order)
        )

    def update_fulfillment(
        self,
        user: User,
        order_id: str,
        request: FulfillmentStatusUpdate
    ) -> OrderResponse:
        self._get_for(user, order_id)
        order = self._service.update_fulfillment_status(order_id, request.fulfillment_status)
        return OrderResponse(
            message="Fulfillment status updated successfully",
            order=OrderDetail.from_model(order)
        )

    def duplicate(self, user: User, order_id: str) -> OrderResponse:
        self._get_for(user, order_id)
        order = self._service.duplicate_order(order_id, created_by=user.id)
        return OrderResponse(
            message="Order duplicated successfully",
            order=OrderDetail.from_model(order)
        )

    def delete(self, user: User, order_id: str, hard: bool) -> MessageResponse:
        if hard:
            AuthenticationManager(get_security_manager(), None).require_role(user, UserRole.ADMIN)
        self._get_for(user, order_id, include_deleted=hard)
        self._service.delete_order(order_id, hard=hard)
        return MessageResponse(message="Order deleted successfully")


def _filters(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Order number, customer name or email"),
    section: Optional[Section] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    fulfillment_status: Optional[FulfillmentStatus] = Query(None),
    customer_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_by: str = Query("order_date"),
    sort_order: str = Query("desc")
) -> OrderFilters:
    return OrderFilters(
        page=page,
        limit=limit,
        search=search,
        section=section,
        payment_status=payment_status,
        fulfillment_status=fulfillment_status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order
    )


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreate,
    customer: Optional[Customer] = Depends(get_current_customer_optional),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    """
    Place an order.

    Prices come from the catalog. Stock is decremented in the same
    transaction; any failure leaves products and customer totals untouched.
    """
    return OrderController(db, cache).create(request, customer)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    filters: OrderFilters = Depends(_filters),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).list(user, filters)


@router.get("/stats", response_model=OrderStatsResponse)
async def order_stats(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    section: Optional[Section] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).stats(user, date_from, date_to, section)


@router.get("/export")
async def export_orders(
    filters: OrderFilters = Depends(_filters),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Matching orders as a CSV download."""
    return OrderController(db).export(user, filters)


@router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(
    order_number: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).get_by_number(user, order_number)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).get(user, order_id)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    request: OrderUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).update(user, order_id, request)


@router.patch("/{order_id}/payment-status", response_model=OrderResponse)
async def update_payment_status(
    order_id: str,
    request: PaymentStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).update_payment(user, order_id, request)


@router.patch("/{order_id}/fulfillment-status", response_model=OrderResponse)
async def update_fulfillment_status(
    order_id: str,
    request: FulfillmentStatusUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderController(db).update_fulfillment(user, order_id, request)


@router.post("/{order_id}/duplicate", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    return OrderController(db, cache).duplicate(user, order_id)


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(
    order_id: str,
    hard: bool = Query(False, description="Remove the order instead of soft deleting it"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Soft delete an order; paid and fulfilled orders cannot be deleted."""
    return OrderController(db).delete(user, order_id, hard)
