"""
==============================================================================
Core Package
==============================================================================

Core infrastructure for the application.

Modules:
--------
- exceptions: AppException class and error factory functions
- security: SecurityManager for hashing and JWT operations
- dependencies: FastAPI dependency injection functions

Usage:
------
    from storefront.core import exceptions
    raise exceptions.not_found("Order", order_id)

==============================================================================
"""

from .exceptions import (
    AppException,
    register_exception_handlers,
)
from .security import SecurityManager, get_security_manager
from .dependencies import (
    AuthenticationManager,
    CustomerAuthenticationManager,
    get_current_customer,
    get_current_customer_optional,
    get_current_user,
    require_admin,
    require_catalog_manager,
)

__all__ = [
    # Exceptions
    "AppException",
    "register_exception_handlers",
    # Security
    "SecurityManager",
    "get_security_manager",
    # Dependencies
    "AuthenticationManager",
    "CustomerAuthenticationManager",
    "get_current_user",
    "get_current_customer",
    "get_current_customer_optional",
    "require_admin",
    "require_catalog_manager",
]
