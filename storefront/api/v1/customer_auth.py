"""
==============================================================================
Customer Authentication Endpoints
==============================================================================

Storefront customer sign-up, login, token rotation, email verification,
password reset and guest tokens.

==============================================================================
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from storefront.core.dependencies import get_current_customer
from storefront.db.database import get_db
from storefront.db.models import Customer
from storefront.schemas.auth import SessionInfo, SessionListResponse
from storefront.schemas.common import MessageResponse
from storefront.schemas.customer import (
    CustomerDetail,
    CustomerInfo,
    CustomerLoginRequest,
    CustomerRefreshRequest,
    CustomerRegisterRequest,
    CustomerResponse,
    CustomerTokenResponse,
    ForgotPasswordRequest,
    GuestTokenRequest,
    GuestTokenResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
)
from storefront.services.customer_auth_service import CustomerAuthService
from storefront.services.email_service import EmailService, get_email_service
from storefront.services.guest_order_service import GuestOrderService


router = APIRouter(prefix="/customer/auth", tags=["Customer Authentication"])


class CustomerAuthController:
    """Controller for customer authentication operations."""

    def __init__(self, db: Session, email_service: Optional[EmailService] = None):
        self._db = db
        self._service = CustomerAuthService(db, email_service)

    def _token_response(
        self,
        customer: Customer,
        access_token: str,
        refresh_token: str,
        linked: Optional[int] = None
    ) -> CustomerTokenResponse:
        return CustomerTokenResponse(
            customer=CustomerInfo.model_validate(customer),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._service.get_token_expiry_seconds(),
            guest_orders_linked=linked
        )

    def register(self, request: CustomerRegisterRequest) -> CustomerTokenResponse:
        customer, access_token, refresh_token, linked = self._service.register(request)
        return self._token_response(customer, access_token, refresh_token, linked)

    def login(self, request: CustomerLoginRequest) -> CustomerTokenResponse:
        return self._token_response(*self._service.login(request.email, request.password))

    def refresh(self, request: CustomerRefreshRequest) -> CustomerTokenResponse:
        return self._token_response(*self._service.refresh(request.refresh_token))

    def logout(self, customer: Customer, request: CustomerRefreshRequest) -> MessageResponse:
        self._service.logout(customer.id, request.refresh_token)
        return MessageResponse(message="Logged out successfully")

    def logout_all(self, customer: Customer) -> MessageResponse:
        count = self._service.logout_all(customer.id)
        return MessageResponse(message=f"Logged out from {count} devices")

    def sessions(self, customer: Customer) -> SessionListResponse:
        sessions = self._service.get_active_sessions(customer.id)
        return SessionListResponse(
            sessions=[SessionInfo.model_validate(s) for s in sessions],
            count=len(sessions)
        )

    def forgot_password(self, request: ForgotPasswordRequest) -> MessageResponse:
        self._service.forgot_password(request.email)
        return MessageResponse(
            message="If an account exists with this email, a password reset link has been sent"
        )

    def reset_password(self, request: ResetPasswordRequest) -> MessageResponse:
        self._service.reset_password(request.token, request.new_password)
        return MessageResponse(
            message="Password reset successfully. Please login with your new password."
        )

    def verify_email(self, token: str) -> CustomerResponse:
        customer = self._service.verify_email(token)
        return CustomerResponse(
            message="Email verified successfully",
            customer=CustomerDetail.model_validate(customer)
        )

    def resend_verification(self, request: ResendVerificationRequest) -> MessageResponse:
        self._service.resend_verification(request.email)
        return MessageResponse(message="Verification email sent")

    def guest_token(self, request: GuestTokenRequest) -> GuestTokenResponse:
        token = GuestOrderService(self._db).generate_guest_token(request.device_id)
        return GuestTokenResponse(**token)


@router.post("/register", response_model=CustomerTokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: CustomerRegisterRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """
    Create a customer account.

    Guest orders previously placed with the same email are moved onto the
    new account; their number is returned as guest_orders_linked.
    """
    controller = CustomerAuthController(db, email_service)
    return controller.register(request)


@router.post("/login", response_model=CustomerTokenResponse)
async def login(request: CustomerLoginRequest, db: Session = Depends(get_db)):
    controller = CustomerAuthController(db)
    return controller.login(request)


@router.post("/refresh", response_model=CustomerTokenResponse)
async def refresh_token(request: CustomerRefreshRequest, db: Session = Depends(get_db)):
    """Rotate the refresh token; a reused token revokes every session."""
    controller = CustomerAuthController(db)
    return controller.refresh(request)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: CustomerRefreshRequest,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerAuthController(db)
    return controller.logout(customer, request)


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerAuthController(db)
    return controller.logout_all(customer)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Send a reset link; the response is the same whether or not the email exists."""
    controller = CustomerAuthController(db, email_service)
    return controller.forgot_password(request)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    controller = CustomerAuthController(db, email_service)
    return controller.reset_password(request)


@router.get("/verify-email", response_model=CustomerResponse)
async def verify_email(
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    controller = CustomerAuthController(db, email_service)
    return controller.verify_email(token)


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    request: ResendVerificationRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    controller = CustomerAuthController(db, email_service)
    return controller.resend_verification(request)


@router.get("/me", response_model=CustomerResponse)
async def get_me(customer: Customer = Depends(get_current_customer)):
    """Current customer with saved addresses."""
    return CustomerResponse(customer=CustomerDetail.model_validate(customer))


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    controller = CustomerAuthController(db)
    return controller.sessions(customer)


@router.post("/guest-token", response_model=GuestTokenResponse)
async def guest_token(request: GuestTokenRequest, db: Session = Depends(get_db)):
    """Issue a short-lived token identifying an anonymous shopper."""
    controller = CustomerAuthController(db)
    return controller.guest_token(request)
