"""
==============================================================================
Admin Customer Endpoints
==============================================================================

Customer management for staff.

==============================================================================
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from storefront.core.dependencies import get_current_user, require_admin
from storefront.db.database import get_db
from storefront.db.models import CustomerStatus, CustomerType, User
from storefront.schemas.customer import (
    AdminCustomerCreate,
    AdminCustomerUpdate,
    CustomerDetail,
    CustomerFilters,
    CustomerInfo,
    CustomerListResponse,
    CustomerProfileResponse,
    CustomerResponse,
    CustomerStatistics,
    CustomerStatisticsResponse,
)
from storefront.schemas.order import CustomerOrderListResponse, CustomerOrderSummary, OrderFilters
from storefront.services.customer_service import CustomerService
from storefront.services.email_service import EmailService, get_email_service


router = APIRouter(prefix="/admin/customers", tags=["Admin Customers"])


class AdminCustomerController:
    """Controller for staff-side customer management."""

    def __init__(self, db: Session, email_service: Optional[EmailService] = None):
        self._service = CustomerService(db, email_service)

    def list(self, filters: CustomerFilters) -> CustomerListResponse:
        customers, pagination, statistics = self._service.list_customers(filters)
        return CustomerListResponse(
            customers=[CustomerInfo.model_validate(c) for c in customers],
            pagination=pagination,
            statistics=statistics
        )

    def create(self, request: AdminCustomerCreate) -> CustomerResponse:
        customer = self._service.create_customer(request)
        return CustomerResponse(
            message="Customer created successfully",
            customer=CustomerDetail.model_validate(customer)
        )

    def get(self, customer_id: str) -> CustomerResponse:
        customer = self._service.get_customer(customer_id)
        return CustomerResponse(customer=CustomerDetail.model_validate(customer))

    def profile(self, customer_id: str) -> CustomerProfileResponse:
        customer, statistics = self._service.get_profile(customer_id)
        return CustomerProfileResponse(
            customer=CustomerDetail.model_validate(customer),
            statistics=CustomerStatistics(**statistics)
        )

    def update(self, customer_id: str, request: AdminCustomerUpdate) -> CustomerResponse:
        customer = self._service.admin_update_customer(customer_id, request)
        return CustomerResponse(
            message="Customer updated successfully",
            customer=CustomerDetail.model_validate(customer)
        )

    def orders(self, customer_id: str, filters: OrderFilters) -> CustomerOrderListResponse:
        self._service.get_customer(customer_id)
        orders, pagination = self._service.get_orders(customer_id, filters)
        return CustomerOrderListResponse(
            orders=[CustomerOrderSummary.from_model(order) for order in orders],
            pagination=pagination
        )

    def statistics(self, customer_id: str) -> CustomerStatisticsResponse:
        self._service.get_customer(customer_id)
        return CustomerStatisticsResponse(
            statistics=CustomerStatistics(**self._service.calculate_statistics(customer_id))
        )


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Name, email or phone"),
    status_filter: Optional[CustomerStatus] = Query(None, alias="status"),
    customer_type: Optional[CustomerType] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated"),
    created_from: Optional[datetime] = Query(None),
    created_to: Optional[datetime] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Customers with per-status counts."""
    filters = CustomerFilters(
        page=page,
        limit=limit,
        search=search,
        status=status_filter,
        customer_type=customer_type,
        tags=tags,
        created_from=created_from,
        created_to=created_to,
        sort_by=sort_by,
        sort_order=sort_order
    )
    return AdminCustomerController(db).list(filters)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: AdminCustomerCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Create a customer without a password; they can claim it by registering."""
    return AdminCustomerController(db, email_service).create(request)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AdminCustomerController(db).get(customer_id)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: str,
    request: AdminCustomerUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return AdminCustomerController(db).update(customer_id, request)


@router.get("/{customer_id}/profile", response_model=CustomerProfileResponse)
async def get_customer_profile(
    customer_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AdminCustomerController(db).profile(customer_id)


@router.get("/{customer_id}/orders", response_model=CustomerOrderListResponse)
async def get_customer_orders(
    customer_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    filters = OrderFilters(page=page, limit=limit)
    return AdminCustomerController(db).orders(customer_id, filters)


@router.get("/{customer_id}/statistics", response_model=CustomerStatisticsResponse)
async def get_customer_statistics(
    customer_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AdminCustomerController(db).statistics(customer_id)
