"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

This package provides:
- Common: Shared response and pagination schemas
- Auth: Staff authentication schemas
- Customer: Customer auth, profile and admin schemas
- Address: Customer address book schemas
- Product: Catalog schemas with per-section attributes
- Order: Checkout and order management schemas

==============================================================================
"""

from .common import SuccessResponse, MessageResponse, Pagination
from .auth import LoginRequest, TokenResponse, RefreshRequest, ChangePasswordRequest
from .customer import CustomerRegisterRequest, CustomerLoginRequest, CustomerInfo, CustomerDetail
from .address import AddressCreate, AddressUpdate, AddressDetail
from .product import ProductCreate, ProductUpdate, ProductDetail, ProductFilters
from .order import OrderCreate, OrderUpdate, OrderDetail, OrderFilters

__all__ = [
    "SuccessResponse",
    "MessageResponse",
    "Pagination",
    "LoginRequest",
    "TokenResponse",
    "RefreshRequest",
    "ChangePasswordRequest",
    "CustomerRegisterRequest",
    "CustomerLoginRequest",
    "CustomerInfo",
    "CustomerDetail",
    "AddressCreate",
    "AddressUpdate",
    "AddressDetail",
    "ProductCreate",
    "ProductUpdate",
    "ProductDetail",
    "ProductFilters",
    "OrderCreate",
    "OrderUpdate",
    "OrderDetail",
    "OrderFilters",
]
