"""
==============================================================================
Database Package
==============================================================================

SQLAlchemy database infrastructure and ORM models.

Architecture:
------------
├── database.py   - DatabaseManager class, session factory
├── models.py     - SQLAlchemy ORM model classes and enums
└── init_db.py    - DatabaseInitializer for setup

Usage:
------
    from storefront.db import DatabaseManager, Order, init_db

    with DatabaseManager().session_scope() as session:
        session.query(Order).count()

==============================================================================
"""

from .database import Base, DatabaseManager, get_db
from .models import (
    Customer,
    CustomerAddress,
    CustomerRefreshToken,
    CustomerStatus,
    FulfillmentStatus,
    InventoryItem,
    Order,
    OrderItem,
    PaymentStatus,
    Product,
    ProductImage,
    RefreshToken,
    Section,
    ShippingAddress,
    User,
    UserRole,
)
from .init_db import DatabaseInitializer, init_db

__all__ = [
    # Database management
    "DatabaseManager",
    "Base",
    "get_db",
    # Models
    "User",
    "RefreshToken",
    "Customer",
    "CustomerRefreshToken",
    "CustomerAddress",
    "Product",
    "ProductImage",
    "InventoryItem",
    "Order",
    "OrderItem",
    "ShippingAddress",
    # Enums
    "UserRole",
    "Section",
    "CustomerStatus",
    "PaymentStatus",
    "FulfillmentStatus",
    # Initialization
    "DatabaseInitializer",
    "init_db",
]
