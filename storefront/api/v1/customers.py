"""
==============================================================================
Customer Self-Service Endpoints
==============================================================================

Profile, credentials, preferences and order history of the signed-in
customer.

==============================================================================
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.core.dependencies import get_current_customer
from storefront.db.database import get_db
from storefront.db.models import Customer, FulfillmentStatus, PaymentStatus, Section
from storefront.schemas.common import MessageResponse
from storefront.schemas.customer import (
    ChangeEmailRequest,
    CustomerChangePasswordRequest,
    CustomerDetail,
    CustomerProfileResponse,
    CustomerProfileUpdate,
    CustomerResponse,
    CustomerStatistics,
    CustomerStatisticsResponse,
    DeleteAccountRequest,
    PreferencesUpdate,
)
from storefront.schemas.order import (
    CustomerOrderListResponse,
    CustomerOrderSummary,
    OrderDetail,
    OrderFilters,
    OrderResponse,
)
from storefront.services.customer_service import CustomerService
from storefront.services.email_service import EmailService, get_email_service


router = APIRouter(prefix="/customer", tags=["Customer"])


class CustomerController:
    """Controller for customer self-service operations."""

    def __init__(self, db: Session, email_service: Optional[EmailService] = None):
        self._service = CustomerService(db, email_service)

    def _customer_response(self, customer: Customer, message: Optional[str] = None) -> CustomerResponse:
        return CustomerResponse(message=message, customer=CustomerDetail.model_validate(customer))

    def get_profile(self, customer: Customer) -> CustomerProfileResponse:
        profile, statistics = self._service.get_profile(customer.id)
        return CustomerProfileResponse(
            customer=CustomerDetail.model_validate(profile),
            statistics=CustomerStatistics(**statistics)
        )

    def update_profile(self, customer: Customer, request: CustomerProfileUpdate) -> CustomerResponse:
        updated = self._service.update_customer(customer.id, request)
        return self._customer_response(updated, "Profile updated successfully")

    def change_email(self, customer: Customer, request: ChangeEmailRequest) -> CustomerResponse:
        updated = self._service.change_email(customer.id, request.new_email, request.password)
        return self._customer_response(
            updated,
            "Email changed successfully. Please verify your new email address."
        )

    def change_password(
        self,
        customer: Customer,
        request: CustomerChangePasswordRequest
    ) -> MessageResponse:
        self._service.change_password(
            customer.id,
            request.current_password,
            request.new_password
        )
        return MessageResponse(
            message="Password changed successfully. Please login again on your other devices."
        )

    def update_preferences(self, customer: Customer, request: PreferencesUpdate) -> CustomerResponse:
        updated = self._service.update_preferences(customer.id, request)
        return self._customer_response(updated, "Preferences updated successfully")

    def delete_account(self, customer: Customer, request: DeleteAccountRequest) -> MessageResponse:
        self._service.delete_account(customer.id, request.password)
        return MessageResponse(message="Account deleted successfully")

    def list_orders(self, customer: Customer, filters: OrderFilters) -> CustomerOrderListResponse:
        orders, pagination = self._service.get_orders(customer.id, filters)
        return CustomerOrderListResponse(
            orders=[CustomerOrderSummary.from_model(order) for order in orders],
            pagination=pagination
        )

    def get_order(self, customer: Customer, order_id: str) -> OrderResponse:
        order = self._service.get_order(customer.id, order_id)
        return OrderResponse(order=OrderDetail.from_model(order))

    def statistics(self, customer: Customer) -> CustomerStatisticsResponse:
        return CustomerStatisticsResponse(
            statistics=CustomerStatistics(**self._service.calculate_statistics(customer.id))
        )


@router.get("/profile", response_model=CustomerProfileResponse)
async def get_profile(
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    """Profile with addresses and order statistics."""
    controller = CustomerController(db)
    return controller.get_profile(customer)


@router.patch("/profile", response_model=CustomerResponse)
async def update_profile(
    request: CustomerProfileUpdate,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerController(db)
    return controller.update_profile(customer, request)


@router.post("/change-email", response_model=CustomerResponse)
async def change_email(
    request: ChangeEmailRequest,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    """Change the login email; the new address must be verified again."""
    controller = CustomerController(db)
    return controller.change_email(customer, request)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: CustomerChangePasswordRequest,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Change password and sign out every session."""
    controller = CustomerController(db, email_service)
    return controller.change_password(customer, request)


@router.patch("/preferences", response_model=CustomerResponse)
async def update_preferences(
    request: PreferencesUpdate,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerController(db)
    return controller.update_preferences(customer, request)


@router.delete("/account", response_model=MessageResponse)
async def delete_account(
    request: DeleteAccountRequest,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerController(db)
    return controller.delete_account(customer, request)


@router.get("/orders", response_model=CustomerOrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    section: Optional[Section] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    fulfillment_status: Optional[FulfillmentStatus] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    """Own orders, newest first, with a preview of the first three items."""
    filters = OrderFilters(
        page=page,
        limit=limit,
        section=section,
        payment_status=payment_status,
        fulfillment_status=fulfillment_status,
        date_from=date_from,
        date_to=date_to
    )
    controller = CustomerController(db)
    return controller.list_orders(customer, filters)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerController(db)
    return controller.get_order(customer, order_id)


@router.get("/statistics", response_model=CustomerStatisticsResponse)
async def get_statistics(
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerController(db)
    return controller.statistics(customer)
