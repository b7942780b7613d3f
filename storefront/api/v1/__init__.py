"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- auth: Staff authentication
- customer_auth: Customer registration, login and verification
- customers: Customer self-service profile and orders
- addresses: Customer address book
- admin_customers: Customer management (staff)
- guest_orders: Guest order lookup
- orders: Checkout and order management
- products: Product catalog and images

==============================================================================
"""

from . import (
    addresses,
    admin_customers,
    auth,
    customer_auth,
    customers,
    guest_orders,
    health,
    orders,
    products,
)

__all__ = [
    "health",
    "auth",
    "customer_auth",
    "customers",
    "addresses",
    "admin_customers",
    "guest_orders",
    "orders",
    "products",
]
