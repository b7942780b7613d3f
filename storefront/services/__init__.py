"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes implementing the storefront's business rules.

This package provides:
- AuthService / CustomerAuthService: sessions for staff and customers
- OrderService: checkout transaction and order management
- ProductService / UploadService: catalog and product images
- CustomerService / CustomerAddressService: customer accounts
- GuestOrderService: orders placed without an account
- TokenCleanupService: expired session sweeping

Boundary services (cache, object storage, email) are process-wide
singletons behind lru_cache getters so routes can override them.

    ┌─────────────────┐
    │   API Router    │
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │    Service      │  ← Business Logic
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │   SQLAlchemy    │  ← Data Access
    └─────────────────┘

Usage:
------
    from storefront.services import OrderService

    order = OrderService(db_session).create_order(order_create)

==============================================================================
"""

from .auth_service import AuthService
from .cache_service import CacheService, get_cache_service
from .cleanup_service import TokenCleanupService, TokenCleanupTaskManager
from .customer_address_service import CustomerAddressService
from .customer_auth_service import CustomerAuthService
from .customer_service import CustomerService
from .email_service import EmailService, get_email_service
from .guest_order_service import GuestOrderService
from .order_service import OrderService
from .product_service import ProductService
from .storage_service import StorageService, get_storage_service
from .upload_service import UploadService

__all__ = [
    "AuthService",
    "CustomerAuthService",
    "CustomerService",
    "CustomerAddressService",
    "GuestOrderService",
    "OrderService",
    "ProductService",
    "UploadService",
    "TokenCleanupService",
    "TokenCleanupTaskManager",
    "CacheService",
    "get_cache_service",
    "StorageService",
    "get_storage_service",
    "EmailService",
    "get_email_service",
]
