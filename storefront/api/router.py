"""
==============================================================================
Main API Router
==============================================================================

Combines all v1 API routes under the configured prefix (/api/v1).

==============================================================================
"""

from fastapi import APIRouter

from storefront.api.v1 import (
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
from storefront.config import get_settings


class MainAPIRouter:
    """
    Main API router combining all versioned routes.

    Provides a single entry point for all API endpoints.
    """

    def __init__(self):
        """Initialize the main router with all sub-routers."""
        self._router = APIRouter(prefix=get_settings().api_prefix)
        self._include_routers()

    def _include_routers(self) -> None:
        """Include all v1 routers."""
        self._router.include_router(health.router)
        self._router.include_router(auth.router)
        self._router.include_router(customer_auth.router)
        self._router.include_router(addresses.router)
        self._router.include_router(customers.router)
        self._router.include_router(admin_customers.router)
        self._router.include_router(guest_orders.router)
        self._router.include_router(orders.router)
        self._router.include_router(products.router)

    @property
    def router(self):
        """Get the FastAPI router instance."""
        return self._router


api_router = MainAPIRouter().router
