"""
==============================================================================
Customer Schemas Module
==============================================================================

Request and response schemas for customer authentication, customer
self-service and admin customer management.

==============================================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.db.models import CustomerStatus, CustomerType, Section
from storefront.schemas.address import AddressDetail
from storefront.schemas.common import LowerEmail


# =============================================================================
# AUTHENTICATION
# =============================================================================

class CustomerRegisterRequest(BaseModel):
    """Customer sign-up; password strength is checked by the service."""
    email: LowerEmail
    password: str = Field(..., min_length=1, max_length=128)
    name: Optional[str] = Field(default=None, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    marketing_consent: bool = Field(default=False)
    sms_consent: bool = Field(default=False)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name.strip()
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.email.split("@")[0]


class CustomerLoginRequest(BaseModel):
    email: LowerEmail
    password: str = Field(..., min_length=1)


class CustomerRefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: LowerEmail


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class ResendVerificationRequest(BaseModel):
    email: LowerEmail


class GuestTokenRequest(BaseModel):
    device_id: Optional[str] = Field(default=None, max_length=128)


class GuestTokenResponse(BaseModel):
    success: bool = Field(default=True)
    guest_token: str
    guest_id: str
    expires_in: int


# =============================================================================
# CUSTOMER DETAIL
# =============================================================================

class CustomerInfo(BaseModel):
    """
    Customer as returned to clients.

    Password hash and verification / reset tokens are never exposed.
    """
    id: str
    email: str
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    email_verified: bool
    status: CustomerStatus
    customer_type: Optional[CustomerType] = None
    total_orders: int
    total_spent: float
    average_order_value: float
    tags: List[str] = Field(default_factory=list)
    marketing_consent: bool
    sms_consent: bool
    email_preferences: Dict[str, bool] = Field(default_factory=dict)
    created_from_guest: bool
    registration_source: Optional[str] = None
    notes: Optional[str] = None
    last_login: Optional[datetime] = None
    last_order_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerDetail(CustomerInfo):
    """Customer with saved addresses, newest first."""
    addresses: List[AddressDetail] = Field(default_factory=list)


class CustomerTokenResponse(BaseModel):
    """Customer login / register / refresh response."""
    success: bool = Field(default=True)
    customer: CustomerInfo
    access_token: str
    refresh_token: str
    token_type: str = Field(default="bearer")
    expires_in: int
    guest_orders_linked: Optional[int] = None


class CustomerResponse(BaseModel):
    success: bool = Field(default=True)
    message: Optional[str] = None
    customer: CustomerDetail


# =============================================================================
# SELF-SERVICE
# =============================================================================

class CustomerProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    location: Optional[str] = Field(default=None, max_length=200)
    timezone: Optional[str] = Field(default=None, max_length=64)
    language: Optional[str] = Field(default=None, max_length=16)


class ChangeEmailRequest(BaseModel):
    new_email: LowerEmail
    password: str = Field(..., min_length=1)


class CustomerChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class EmailPreferences(BaseModel):
    newsletter: Optional[bool] = None
    order_updates: Optional[bool] = None
    promotions: Optional[bool] = None


class PreferencesUpdate(BaseModel):
    marketing_consent: Optional[bool] = None
    sms_consent: Optional[bool] = None
    email_preferences: Optional[EmailPreferences] = None


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1)


class TopProduct(BaseModel):
    product_id: Optional[str]
    product_name: str
    purchase_count: int


class CustomerStatistics(BaseModel):
    customer_id: str
    total_orders: int
    total_spent: float
    average_order_value: float
    last_order_date: Optional[datetime] = None
    days_since_last_order: Optional[int] = None
    order_frequency: float
    favorite_section: Section
    top_products: List[TopProduct]
    lifetime_value: float
    loyalty_tier: str
    customer_since: datetime
    last_updated: datetime


class CustomerStatisticsResponse(BaseModel):
    success: bool = Field(default=True)
    statistics: CustomerStatistics


class CustomerProfileResponse(BaseModel):
    success: bool = Field(default=True)
    customer: CustomerDetail
    statistics: CustomerStatistics


# =============================================================================
# ADMIN
# =============================================================================

class AdminCustomerCreate(BaseModel):
    """Customer created by staff; no password until the customer registers."""
    email: LowerEmail
    name: str = Field(..., min_length=1, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    location: Optional[str] = Field(default=None, max_length=200)
    customer_type: Optional[CustomerType] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    marketing_consent: bool = False
    sms_consent: bool = False
    send_welcome_email: bool = False


class AdminCustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    location: Optional[str] = Field(default=None, max_length=200)
    status: Optional[CustomerStatus] = None
    customer_type: Optional[CustomerType] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    marketing_consent: Optional[bool] = None
    sms_consent: Optional[bool] = None


class CustomerFilters(BaseModel):
    """Admin customer list filters, built from query parameters."""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)
    search: Optional[str] = None
    status: Optional[CustomerStatus] = None
    customer_type: Optional[CustomerType] = None
    tags: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: str) -> str:
        allowed = {"created_at", "name", "email", "total_spent", "total_orders", "last_order_date"}
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


class CustomerListResponse(BaseModel):
    success: bool = Field(default=True)
    customers: List[CustomerInfo]
    pagination: Dict[str, Any]
    statistics: Dict[str, int]


# =============================================================================
# GUEST ORDERS
# =============================================================================

class GuestOrderLookupRequest(BaseModel):
    email: LowerEmail
    order_number: str = Field(..., min_length=1, max_length=20)


class CheckEmailRequest(BaseModel):
    email: LowerEmail


class CheckEmailResponse(BaseModel):
    success: bool = Field(default=True)
    has_guest_orders: bool
    guest_order_count: int
    message: Optional[str] = None
