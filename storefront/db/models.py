"""
==============================================================================
SQLAlchemy ORM Models Module
==============================================================================

ORM models for the multi-section (CAFE / FLOWERS / BOOKS) storefront.

Database Schema:
---------------

    ┌──────────────┐ 1:N ┌──────────────────┐
    │    users     │────▶│  refresh_tokens  │
    └──────────────┘     └──────────────────┘

    ┌──────────────┐ 1:N ┌───────────────────────────┐
    │  customers   │────▶│  customer_refresh_tokens  │
    │              │ 1:N ┌───────────────────────────┐
    │              │────▶│   customer_addresses      │
    └──────┬───────┘     └───────────────────────────┘
           │ 1:N (nullable: guest orders)
           ▼
    ┌──────────────┐ 1:N ┌──────────────────┐ N:1 ┌──────────────┐
    │    orders    │────▶│   order_items    │────▶│   products   │
    │              │ 1:1 ┌──────────────────┐     │              │
    │              │────▶│shipping_addresses│     │              │
    └──────────────┘     └──────────────────┘     └──────┬───────┘
                                                         │ 1:N
                              ┌──────────────────┬───────┴───────┐
                              ▼                  ▼               │
                     ┌────────────────┐ ┌─────────────────┐      │
                     │ product_images │ │ inventory_items │◀─────┘
                     └────────────────┘ └─────────────────┘

Money columns are NUMERIC(12, 2) read back as floats. Timestamps are naive
UTC. Soft-deletable rows (customers, products, orders) carry deleted_at.

==============================================================================
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, relationship

from storefront.db.database import Base
from storefront.utils.clock import utc_now


def _uuid() -> str:
    return str(uuid.uuid4())


def money_column(**kwargs) -> Column:
    """Column factory for a 2-decimal money amount."""
    kwargs.setdefault("nullable", False)
    kwargs.setdefault("default", 0)
    return Column(Numeric(12, 2, asdecimal=False), **kwargs)


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """
    Staff role enumeration.

    - ADMIN: everything, every section
    - MANAGER: catalog and orders of their assigned section
    - STAFF: read access and order handling
    """

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"

    def __str__(self) -> str:
        return self.value


class Section(str, enum.Enum):
    """Store sections; every product belongs to exactly one."""

    CAFE = "CAFE"
    FLOWERS = "FLOWERS"
    BOOKS = "BOOKS"

    def __str__(self) -> str:
        return self.value


class ProductStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"

    def __str__(self) -> str:
        return self.value


class ProductAvailability(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    PRE_ORDER = "PRE_ORDER"

    def __str__(self) -> str:
        return self.value


class InventoryStatus(str, enum.Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"

    def __str__(self) -> str:
        return self.value


class PaymentStatus(str, enum.Enum):
    """
    Order payment status.

    Transitions:
        PENDING  → PAID | FAILED
        PAID     → REFUNDED
        FAILED   → PENDING
        REFUNDED → (terminal)
    """

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    def __str__(self) -> str:
        return self.value


class FulfillmentStatus(str, enum.Enum):
    """
    Order fulfillment status.

    Transitions:
        UNFULFILLED → FULFILLED | PARTIAL | SCHEDULED
        FULFILLED   → UNFULFILLED
        PARTIAL     → FULFILLED | UNFULFILLED
        SCHEDULED   → FULFILLED | UNFULFILLED | PARTIAL
    """

    UNFULFILLED = "UNFULFILLED"
    FULFILLED = "FULFILLED"
    PARTIAL = "PARTIAL"
    SCHEDULED = "SCHEDULED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_active(self) -> bool:
        """Still waiting on stock to leave the building."""
        return self in (FulfillmentStatus.UNFULFILLED, FulfillmentStatus.PARTIAL)


class CustomerStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"

    def __str__(self) -> str:
        return self.value


class CustomerType(str, enum.Enum):
    REGULAR = "REGULAR"
    VIP = "VIP"
    WHOLESALE = "WHOLESALE"

    def __str__(self) -> str:
        return self.value


class AddressLabel(str, enum.Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# STAFF USERS
# =============================================================================

class User(Base):
    """
    Staff account model.

    Managers are scoped to a single section through assigned_section;
    admins see every section.
    """

    __tablename__ = "users"

    # =========================================================================
    # COLUMNS
    # =========================================================================

    id: str = Column(
        String(36),
        primary_key=True,
        default=_uuid,
        doc="Unique user identifier (UUID)"
    )

    email: str = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Login email (lowercase)"
    )

    password_hash: str = Column(
        String(255),
        nullable=False,
        doc="Bcrypt hashed password"
    )

    first_name: str = Column(String(100), nullable=False)

    last_name: str = Column(String(100), nullable=False)

    role: UserRole = Column(
        Enum(UserRole),
        default=UserRole.STAFF,
        nullable=False,
        doc="Role for access control"
    )

    assigned_section: Optional[Section] = Column(
        Enum(Section),
        nullable=True,
        doc="Section a manager is restricted to"
    )

    is_active: bool = Column(
        Boolean,
        default=True,
        nullable=False,
        doc="Inactive users cannot log in"
    )

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    updated_at: datetime = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    # =========================================================================
    # RELATIONSHIPS
    # =========================================================================

    refresh_tokens: Mapped[List["RefreshToken"]] = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        doc="Active login sessions"
    )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def can_access_section(self, section: Optional[Section]) -> bool:
        """Managers with an assigned section only reach that section."""
        if not self.is_manager or self.assigned_section is None:
            return True
        return section == self.assigned_section

    def __repr__(self) -> str:
        return (
            f"User(id={self.id!r}, "
            f"email={self.email!r}, "
            f"role={self.role.value!r}, "
            f"is_active={self.is_active})"
        )

    def __str__(self) -> str:
        return f"{self.email} ({self.role.value})"


class RefreshToken(Base):
    """Stored staff refresh token; one row per login session."""

    __tablename__ = "refresh_tokens"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    token: str = Column(
        String(512),
        unique=True,
        nullable=False,
        index=True,
        doc="Encoded JWT"
    )

    user_id: str = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    expires_at: datetime = Column(DateTime, nullable=False)

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="refresh_tokens")

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= utc_now()

    def __repr__(self) -> str:
        return f"RefreshToken(id={self.id!r}, user_id={self.user_id!r})"


# =============================================================================
# CUSTOMERS
# =============================================================================

class Customer(Base):
    """
    Storefront customer.

    A customer row may exist without a password: checkout and admin
    creation record customers who have not registered yet, and a later
    registration with the same email upgrades the row in place.
    """

    __tablename__ = "customers"

    # =========================================================================
    # COLUMNS
    # =========================================================================

    id: str = Column(String(36), primary_key=True, default=_uuid)

    email: str = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Contact and login email (lowercase)"
    )

    password_hash: Optional[str] = Column(
        String(255),
        nullable=True,
        doc="Bcrypt hash; NULL until the customer registers"
    )

    email_verified: bool = Column(Boolean, default=False, nullable=False)

    email_verification_token: Optional[str] = Column(String(128), nullable=True, index=True)

    email_verification_expiry: Optional[datetime] = Column(DateTime, nullable=True)

    password_reset_token: Optional[str] = Column(String(128), nullable=True, index=True)

    password_reset_expiry: Optional[datetime] = Column(DateTime, nullable=True)

    name: str = Column(String(200), nullable=False, doc="Display name")

    first_name: Optional[str] = Column(String(100), nullable=True)

    last_name: Optional[str] = Column(String(100), nullable=True)

    phone: Optional[str] = Column(String(50), nullable=True)

    location: Optional[str] = Column(String(200), nullable=True)

    timezone: Optional[str] = Column(String(64), nullable=True)

    language: Optional[str] = Column(String(16), nullable=True)

    status: CustomerStatus = Column(
        Enum(CustomerStatus),
        default=CustomerStatus.ACTIVE,
        nullable=False,
        index=True
    )

    customer_type: Optional[CustomerType] = Column(Enum(CustomerType), nullable=True)

    total_orders: int = Column(Integer, default=0, nullable=False)

    total_spent: float = money_column()

    average_order_value: float = money_column()

    tags: List[str] = Column(JSON, default=list, nullable=False)

    marketing_consent: bool = Column(Boolean, default=False, nullable=False)

    sms_consent: bool = Column(Boolean, default=False, nullable=False)

    email_preferences: Dict[str, bool] = Column(
        JSON,
        default=lambda: {"newsletter": False, "order_updates": True, "promotions": False},
        nullable=False,
        doc="Opt-ins per email category"
    )

    created_from_guest: bool = Column(Boolean, default=False, nullable=False)

    registration_source: Optional[str] = Column(
        String(50),
        nullable=True,
        doc="web, guest_conversion, checkout or admin"
    )

    notes: Optional[str] = Column(Text, nullable=True)

    last_login: Optional[datetime] = Column(DateTime, nullable=True)

    last_order_date: Optional[datetime] = Column(DateTime, nullable=True)

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    updated_at: datetime = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    deleted_at: Optional[datetime] = Column(DateTime, nullable=True)

    # =========================================================================
    # RELATIONSHIPS
    # =========================================================================

    refresh_tokens: Mapped[List["CustomerRefreshToken"]] = relationship(
        "CustomerRefreshToken",
        back_populates="customer",
        cascade="all, delete-orphan"
    )

    addresses: Mapped[List["CustomerAddress"]] = relationship(
        "CustomerAddress",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="CustomerAddress.created_at.desc()"
    )

    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="customer",
        doc="Orders placed by or linked to this customer"
    )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"Customer(id={self.id!r}, email={self.email!r}, status={self.status.value!r})"


class CustomerRefreshToken(Base):
    """Stored customer refresh token; one row per device session."""

    __tablename__ = "customer_refresh_tokens"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    token: str = Column(String(512), unique=True, nullable=False, index=True)

    customer_id: str = Column(
        String(36),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    expires_at: datetime = Column(DateTime, nullable=False)

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="refresh_tokens")

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= utc_now()


class CustomerAddress(Base):
    """
    Saved customer address.

    At most one address per customer is the default shipping address
    (is_default) and at most one the default billing address.
    """

    __tablename__ = "customer_addresses"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    customer_id: str = Column(
        String(36),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    first_name: str = Column(String(100), nullable=False)

    last_name: str = Column(String(100), nullable=False)

    company: Optional[str] = Column(String(200), nullable=True)

    address_line1: str = Column(String(255), nullable=False)

    address_line2: Optional[str] = Column(String(255), nullable=True)

    city: str = Column(String(100), nullable=False)

    state: Optional[str] = Column(String(100), nullable=True)

    postal_code: Optional[str] = Column(String(20), nullable=True)

    country: str = Column(String(100), nullable=False)

    phone: Optional[str] = Column(String(50), nullable=True)

    is_default: bool = Column(Boolean, default=False, nullable=False, doc="Default shipping address")

    is_default_billing: bool = Column(Boolean, default=False, nullable=False)

    label: AddressLabel = Column(Enum(AddressLabel), default=AddressLabel.HOME, nullable=False)

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    updated_at: datetime = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="addresses")


# =============================================================================
# CATALOG
# =============================================================================

class Product(Base):
    """
    Catalog product.

    Cafe and flower products are identified by name, books by title.
    Section-specific details live in the matching *_attributes JSON column,
    e.g. cafe_attributes = {"category": "coffee", "caffeine_content": "high"}.
    """

    __tablename__ = "products"

    # =========================================================================
    # COLUMNS
    # =========================================================================

    id: str = Column(String(36), primary_key=True, default=_uuid)

    name: Optional[str] = Column(String(255), nullable=True, index=True)

    title: Optional[str] = Column(String(255), nullable=True, index=True)

    description: Optional[str] = Column(Text, nullable=True)

    section: Section = Column(Enum(Section), nullable=False, index=True)

    price: float = money_column(default=None)

    compare_at_price: Optional[float] = money_column(nullable=True, default=None)

    cost_price: Optional[float] = money_column(nullable=True, default=None)

    sku: str = Column(String(64), unique=True, nullable=False, index=True)

    stock_quantity: int = Column(Integer, default=0, nullable=False)

    track_quantity: bool = Column(Boolean, default=True, nullable=False)

    continue_selling_out_of_stock: bool = Column(Boolean, default=False, nullable=False)

    status: ProductStatus = Column(
        Enum(ProductStatus),
        default=ProductStatus.DRAFT,
        nullable=False,
        index=True
    )

    availability: ProductAvailability = Column(
        Enum(ProductAvailability),
        default=ProductAvailability.OUT_OF_STOCK,
        nullable=False
    )

    tags: List[str] = Column(JSON, default=list, nullable=False)

    collections: List[str] = Column(JSON, default=list, nullable=False)

    cafe_attributes: Optional[Dict[str, Any]] = Column(JSON, nullable=True)

    flowers_attributes: Optional[Dict[str, Any]] = Column(JSON, nullable=True)

    books_attributes: Optional[Dict[str, Any]] = Column(JSON, nullable=True)

    created_by: Optional[str] = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    updated_by: Optional[str] = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    updated_at: datetime = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    deleted_at: Optional[datetime] = Column(DateTime, nullable=True)

    # =========================================================================
    # RELATIONSHIPS
    # =========================================================================

    images: Mapped[List["ProductImage"]] = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.position"
    )

    inventory_items: Mapped[List["InventoryItem"]] = relationship(
        "InventoryItem",
        back_populates="product",
        cascade="all, delete-orphan"
    )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def display_name(self) -> str:
        """Name for cafe/flowers, title for books."""
        return self.name or self.title or "Unknown Product"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"Product(id={self.id!r}, sku={self.sku!r}, section={self.section.value!r})"


class ProductImage(Base):
    """One uploaded image with its three stored renditions."""

    __tablename__ = "product_images"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    product_id: str = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    original_url: str = Column(String(1024), nullable=False)

    medium_url: str = Column(String(1024), nullable=False)

    thumbnail_url: str = Column(String(1024), nullable=False)

    alt_text: Optional[str] = Column(String(255), nullable=True)

    position: int = Column(Integer, default=0, nullable=False)

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="images")


class InventoryItem(Base):
    """Warehouse-side stock record mirroring a product."""

    __tablename__ = "inventory_items"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    product_id: str = Column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    product_name: str = Column(String(255), nullable=False)

    sku: str = Column(String(64), nullable=False)

    section: Section = Column(Enum(Section), nullable=False)

    on_hand: int = Column(Integer, default=0, nullable=False)

    available: int = Column(Integer, default=0, nullable=False)

    committed: int = Column(Integer, default=0, nullable=False)

    incoming: int = Column(Integer, default=0, nullable=False)

    location: str = Column(String(100), default="Main Warehouse", nullable=False)

    cost_price: float = money_column()

    selling_price: float = money_column()

    status: InventoryStatus = Column(Enum(InventoryStatus), nullable=False)

    reorder_point: int = Column(Integer, default=10, nullable=False)

    reorder_quantity: int = Column(Integer, default=50, nullable=False)

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    updated_at: datetime = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="inventory_items")


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Customer order.

    Guest orders have customer_id NULL and guest_order True until the
    customer registers with the same email and the order gets linked.
    """

    __tablename__ = "orders"

    # =========================================================================
    # COLUMNS
    # =========================================================================

    id: str = Column(String(36), primary_key=True, default=_uuid)

    order_number: str = Column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        doc="Human-facing number, e.g. #1001"
    )

    customer_id: Optional[str] = Column(
        String(36),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    customer_email: str = Column(String(255), nullable=False, index=True)

    customer_name: str = Column(String(200), nullable=False)

    customer_phone: Optional[str] = Column(String(50), nullable=True)

    guest_order: bool = Column(Boolean, default=False, nullable=False)

    guest_token: Optional[str] = Column(String(64), nullable=True)

    section: Section = Column(Enum(Section), nullable=False, index=True)

    payment_status: PaymentStatus = Column(
        Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )

    fulfillment_status: FulfillmentStatus = Column(
        Enum(FulfillmentStatus),
        default=FulfillmentStatus.UNFULFILLED,
        nullable=False,
        index=True
    )

    subtotal: float = money_column()

    tax: float = money_column()

    discount: float = money_column()

    shipping_cost: float = money_column()

    total: float = money_column()

    currency: str = Column(String(3), default="PKR", nullable=False)

    payment_method: Optional[str] = Column(String(50), nullable=True)

    notes: Optional[str] = Column(Text, nullable=True)

    tags: List[str] = Column(JSON, default=list, nullable=False)

    order_date: datetime = Column(DateTime, default=utc_now, nullable=False, index=True)

    created_by: Optional[str] = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at: datetime = Column(DateTime, default=utc_now, nullable=False)

    updated_at: datetime = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    deleted_at: Optional[datetime] = Column(DateTime, nullable=True)

    # =========================================================================
    # RELATIONSHIPS
    # =========================================================================

    customer: Mapped[Optional["Customer"]] = relationship("Customer", back_populates="orders")

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan"
    )

    shipping_address: Mapped[Optional["ShippingAddress"]] = relationship(
        "ShippingAddress",
        back_populates="order",
        cascade="all, delete-orphan",
        uselist=False
    )

    @property
    def items_count(self) -> int:
        """Number of line items, not units."""
        return len(self.items)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return (
            f"Order(order_number={self.order_number!r}, "
            f"total={self.total!r}, "
            f"payment_status={self.payment_status.value!r})"
        )


class OrderItem(Base):
    """
    Line item snapshot.

    product_name, sku and price are copied at checkout so later catalog
    edits never change a placed order.
    """

    __tablename__ = "order_items"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    order_id: str = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    product_id: Optional[str] = Column(
        String(36),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    product_name: str = Column(String(255), nullable=False)

    sku: Optional[str] = Column(String(64), nullable=True)

    variant_id: Optional[str] = Column(String(36), nullable=True)

    quantity: int = Column(Integer, nullable=False)

    price: float = money_column()

    total: float = money_column()

    order: Mapped["Order"] = relationship("Order", back_populates="items")


class ShippingAddress(Base):
    __tablename__ = "shipping_addresses"

    id: str = Column(String(36), primary_key=True, default=_uuid)

    order_id: str = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    full_name: str = Column(String(200), nullable=False)

    phone: Optional[str] = Column(String(50), nullable=True)

    email: Optional[str] = Column(String(255), nullable=True)

    address: str = Column(String(500), nullable=False)

    city: str = Column(String(100), nullable=False)

    state: Optional[str] = Column(String(100), nullable=True)

    postal_code: Optional[str] = Column(String(20), nullable=True)

    country: str = Column(String(100), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="shipping_address")
