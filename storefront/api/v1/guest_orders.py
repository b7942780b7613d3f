"""
==============================================================================
Guest Order Endpoints
==============================================================================

Order lookup for shoppers without an account, and the email check the
sign-up form uses to offer linking earlier orders.

==============================================================================
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db.database import get_db
from storefront.schemas.customer import (
    CheckEmailRequest,
    CheckEmailResponse,
    GuestOrderLookupRequest,
)
from storefront.schemas.order import GuestOrderLookupResponse, OrderDetail
from storefront.services.guest_order_service import GuestOrderService


router = APIRouter(prefix="/guest-orders", tags=["Guest Orders"])


class GuestOrderController:
    """Controller for guest order operations."""

    def __init__(self, db: Session):
        self._service = GuestOrderService(db)

    def lookup(self, request: GuestOrderLookupRequest) -> GuestOrderLookupResponse:
        order, has_account = self._service.lookup_guest_order(
            request.email,
            request.order_number
        )
        return GuestOrderLookupResponse(
            order=OrderDetail.from_model(order),
            has_account=has_account,
            message=None if has_account else "Create an account to track all your orders"
        )

    def check_email(self, request: CheckEmailRequest) -> CheckEmailResponse:
        count = self._service.get_guest_order_count(request.email)
        message = None
        if count:
            noun = "order" if count == 1 else "orders"
            message = (
                f"You have {count} previous {noun}. "
                f"Create an account to see your order history."
            )
        return CheckEmailResponse(
            has_guest_orders=count > 0,
            guest_order_count=count,
            message=message
        )


@router.post("/lookup", response_model=GuestOrderLookupResponse)
async def lookup_order(request: GuestOrderLookupRequest, db: Session = Depends(get_db)):
    """Find an order by the email it was placed with and its number."""
    return GuestOrderController(db).lookup(request)


@router.post("/check-email", response_model=CheckEmailResponse)
async def check_email(request: CheckEmailRequest, db: Session = Depends(get_db)):
    return GuestOrderController(db).check_email(request)
