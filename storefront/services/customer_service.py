"""
==============================================================================
Customer Service Module
==============================================================================

Customer self-service (profile, email, password, preferences, account
deletion, order history) and admin customer management.

Statistics are computed from the customer's non-deleted orders on every
request rather than read from the denormalized counters.

Loyalty Tiers (lifetime spend):
------------------------------
    platinum  >= 50 000
    gold      >= 25 000
    silver    >= 10 000
    bronze    otherwise

==============================================================================
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session, selectinload

from storefront.config import get_settings
from storefront.core import exceptions
from storefront.core.security import SecurityManager, get_security_manager
from storefront.db.models import (
    Customer,
    CustomerRefreshToken,
    CustomerStatus,
    Order,
    Section,
)
from storefront.schemas.common import Pagination
from storefront.schemas.customer import (
    AdminCustomerCreate,
    AdminCustomerUpdate,
    CustomerFilters,
    CustomerProfileUpdate,
    PreferencesUpdate,
)
from storefront.schemas.order import OrderFilters
from storefront.services.customer_auth_service import require_strong_password
from storefront.services.email_service import EmailService, get_email_service
from storefront.utils.clock import utc_now
from storefront.utils.pricing import round_money


logger = logging.getLogger(__name__)


LOYALTY_TIERS = (
    (50000, "platinum"),
    (25000, "gold"),
    (10000, "silver"),
)

TOP_PRODUCTS_LIMIT = 5


def loyalty_tier(total_spent: float) -> str:
    for threshold, tier in LOYALTY_TIERS:
        if total_spent >= threshold:
            return tier
    return "bronze"


def favorite_section(sections: List[Section]) -> Section:
    """Section with the most orders; CAFE when there are none, first seen on ties."""
    counts = Counter(sections)
    favorite = Section.CAFE
    for section, count in counts.items():
        if count > counts.get(favorite, 0):
            favorite = section
    return favorite


class CustomerService:
    """
    Customer accounts as seen by the customer and by staff.

    Example:
        >>> service = CustomerService(db_session)
        >>> customer, statistics = service.get_profile(customer_id)
        >>> service.change_email(customer_id, "new@example.com", "Secret#123")
    """

    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        security: Optional[SecurityManager] = None
    ) -> None:
        self._db = db
        self._email = email_service or get_email_service()
        self._security = security or get_security_manager()
        self._settings = get_settings()

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get_customer(self, customer_id: str) -> Customer:
        """
        Raises:
            AppException: CUSTOMER_NOT_FOUND for missing or deleted customers
        """
        customer = self._db.query(Customer).options(
            selectinload(Customer.addresses)
        ).filter(
            Customer.id == customer_id,
            Customer.deleted_at.is_(None)
        ).first()

        if not customer:
            raise exceptions.not_found("Customer", customer_id)

        return customer

    def _get_with_password(self, customer_id: str) -> Customer:
        customer = self.get_customer(customer_id)
        if not customer.has_password:
            raise exceptions.not_found("Customer", customer_id)
        return customer

    def get_profile(self, customer_id: str) -> Tuple[Customer, Dict[str, Any]]:
        customer = self.get_customer(customer_id)
        return customer, self.calculate_statistics(customer_id)

    # =========================================================================
    # SELF-SERVICE
    # =========================================================================

    def update_customer(self, customer_id: str, data: CustomerProfileUpdate) -> Customer:
        customer = self.get_customer(customer_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "name" and value is None:
                continue
            setattr(customer, field, value)

        self._db.commit()
        self._db.refresh(customer)

        logger.info(f"✅ Customer profile updated: {customer_id}")

        return customer

    def change_email(self, customer_id: str, new_email: str, password: str) -> Customer:
        """
        Switch the login email after re-checking the password.

        The new address starts unverified.

        Raises:
            AppException: UNAUTHORIZED for a wrong password,
                CONFLICT if another customer already uses the email
        """
        customer = self._get_with_password(customer_id)

        if not self._security.verify_password(password, customer.password_hash):
            raise exceptions.unauthorized("Invalid password")

        new_email = new_email.strip().lower()
        taken = self._db.query(Customer).filter(
            Customer.email == new_email,
            Customer.id != customer.id
        ).first()
        if taken or new_email == customer.email:
            raise exceptions.conflict("Email already in use")

        old_email = customer.email
        customer.email = new_email
        customer.email_verified = False

        self._db.commit()
        self._db.refresh(customer)

        logger.info(f"✅ Customer email changed: {old_email} → {new_email}")

        return customer

    def change_password(self, customer_id: str, current_password: str, new_password: str) -> None:
        """
        Replace the password and sign out every session.

        Raises:
            AppException: UNAUTHORIZED for a wrong current password,
                VALIDATION_ERROR for a weak new password
        """
        customer = self._get_with_password(customer_id)

        if not self._security.verify_password(current_password, customer.password_hash):
            raise exceptions.unauthorized("Invalid current password")

        require_strong_password(new_password)

        customer.password_hash = self._security.hash_password(new_password)
        self._revoke_sessions(customer.id)
        self._db.commit()

        self._email.send_password_changed_email(customer.email, customer.name)

        logger.info(f"✅ Customer password changed: {customer.email}")

    def update_preferences(self, customer_id: str, data: PreferencesUpdate) -> Customer:
        customer = self.get_customer(customer_id)

        if data.marketing_consent is not None:
            customer.marketing_consent = data.marketing_consent
        if data.sms_consent is not None:
            customer.sms_consent = data.sms_consent
        if data.email_preferences is not None:
            preferences = dict(customer.email_preferences or {})
            preferences.update(data.email_preferences.model_dump(exclude_none=True))
            customer.email_preferences = preferences

        self._db.commit()
        self._db.refresh(customer)

        logger.info(f"Customer preferences updated: {customer_id}")

        return customer

    def delete_account(self, customer_id: str, password: str) -> None:
        """Soft delete the account and revoke all sessions."""
        customer = self._get_with_password(customer_id)

        if not self._security.verify_password(password, customer.password_hash):
            raise exceptions.unauthorized("Invalid password")

        customer.deleted_at = utc_now()
        customer.status = CustomerStatus.INACTIVE
        self._revoke_sessions(customer.id)
        self._db.commit()

        logger.info(f"🗑️ Customer account deleted (soft): {customer.email}")

    def _revoke_sessions(self, customer_id: str) -> int:
        return self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.customer_id == customer_id
        ).delete(synchronize_session=False)

    # =========================================================================
    # ORDERS
    # =========================================================================

    def get_orders(self, customer_id: str, filters: OrderFilters) -> Tuple[List[Order], Dict[str, Any]]:
        """Own orders, newest first; search and customer_id filters are ignored."""
        limit = min(filters.limit, self._settings.max_page_size)

        query = self._db.query(Order).filter(
            Order.customer_id == customer_id,
            Order.deleted_at.is_(None)
        )

        if filters.section:
            query = query.filter(Order.section == filters.section)
        if filters.payment_status:
            query = query.filter(Order.payment_status == filters.payment_status)
        if filters.fulfillment_status:
            query = query.filter(Order.fulfillment_status == filters.fulfillment_status)
        if filters.date_from:
            query = query.filter(Order.order_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(Order.order_date <= filters.date_to)

        total = query.count()

        orders = query.options(
            selectinload(Order.items),
            selectinload(Order.shipping_address)
        ).order_by(Order.order_date.desc()).offset(
            (filters.page - 1) * limit
        ).limit(limit).all()

        pagination = Pagination.create(total, filters.page, limit).with_navigation()

        return orders, pagination

    def get_order(self, customer_id: str, order_id: str) -> Order:
        order = self._db.query(Order).filter(
            Order.id == order_id,
            Order.customer_id == customer_id,
            Order.deleted_at.is_(None)
        ).first()

        if not order:
            raise exceptions.not_found("Order", order_id)

        return order

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def calculate_statistics(self, customer_id: str) -> Dict[str, Any]:
        """
        Order statistics for one customer.

        Order frequency is orders per 30 days since the account was
        created. Top products count orders containing the product, not
        units bought.
        """
        customer = self._db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise exceptions.not_found("Customer", customer_id)

        orders = self._db.query(Order).options(selectinload(Order.items)).filter(
            Order.customer_id == customer_id,
            Order.deleted_at.is_(None)
        ).order_by(Order.order_date.desc()).all()

        now = utc_now()
        total_orders = len(orders)
        total_spent = round_money(sum(order.total for order in orders))
        last_order_date = orders[0].order_date if orders else None

        days_since_account = (now - customer.created_at).days
        order_frequency = (
            total_orders / days_since_account * 30 if days_since_account > 0 else 0.0
        )

        product_counts: Counter = Counter()
        product_names: Dict[Optional[str], str] = {}
        for order in orders:
            for product_id in {item.product_id for item in order.items}:
                product_counts[product_id] += 1
            for item in order.items:
                product_names.setdefault(item.product_id, item.product_name)

        top_products = [
            {
                "product_id": product_id,
                "product_name": product_names[product_id],
                "purchase_count": count,
            }
            for product_id, count in product_counts.most_common(TOP_PRODUCTS_LIMIT)
        ]

        return {
            "customer_id": customer_id,
            "total_orders": total_orders,
            "total_spent": total_spent,
            "average_order_value": round_money(total_spent / total_orders) if total_orders else 0.0,
            "last_order_date": last_order_date,
            "days_since_last_order": (now - last_order_date).days if last_order_date else None,
            "order_frequency": round(order_frequency, 2),
            "favorite_section": favorite_section([order.section for order in orders]),
            "top_products": top_products,
            "lifetime_value": total_spent,
            "loyalty_tier": loyalty_tier(total_spent),
            "customer_since": customer.created_at,
            "last_updated": now,
        }

    # =========================================================================
    # ADMIN
    # =========================================================================

    def list_customers(self, filters: CustomerFilters) -> Tuple[List[Customer], Dict[str, Any], Dict[str, int]]:
        """
        Returns:
            Tuple of (customers, pagination, statistics) where statistics
            counts non-deleted customers per status
        """
        limit = min(filters.limit, self._settings.max_page_size)

        query = self._db.query(Customer).filter(Customer.deleted_at.is_(None))

        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(or_(
                Customer.name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern)
            ))
        if filters.status:
            query = query.filter(Customer.status == filters.status)
        if filters.customer_type:
            query = query.filter(Customer.customer_type == filters.customer_type)
        if filters.tags:
            tags = [tag.strip() for tag in filters.tags.split(",") if tag.strip()]
            text = cast(Customer.tags, String)
            query = query.filter(or_(*[text.like(f"%{json.dumps(tag)}%") for tag in tags]))
        if filters.created_from:
            query = query.filter(Customer.created_at >= filters.created_from)
        if filters.created_to:
            query = query.filter(Customer.created_at <= filters.created_to)

        total = query.count()

        sort_column = getattr(Customer, filters.sort_by)
        query = query.order_by(
            sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
        )
        customers = query.offset((filters.page - 1) * limit).limit(limit).all()

        status_counts = dict(
            self._db.query(Customer.status, func.count(Customer.id)).filter(
                Customer.deleted_at.is_(None)
            ).group_by(Customer.status).all()
        )
        statistics = {
            "total_customers": total,
            "active_customers": status_counts.get(CustomerStatus.ACTIVE, 0),
            "inactive_customers": status_counts.get(CustomerStatus.INACTIVE, 0),
            "suspended_customers": status_counts.get(CustomerStatus.SUSPENDED, 0),
        }

        pagination = Pagination.create(total, filters.page, limit).with_navigation()

        return customers, pagination, statistics

    def create_customer(self, data: AdminCustomerCreate) -> Customer:
        """
        Create a passwordless customer on behalf of the store.

        The customer can claim the account later by registering with the
        same email.

        Raises:
            AppException: CONFLICT if the email is taken
        """
        if self._db.query(Customer).filter(Customer.email == data.email).first():
            raise exceptions.conflict("Email already exists", {"email": data.email})

        customer = Customer(
            email=data.email,
            name=data.name,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            location=data.location,
            customer_type=data.customer_type,
            tags=list(data.tags),
            notes=data.notes,
            marketing_consent=data.marketing_consent,
            sms_consent=data.sms_consent,
            status=CustomerStatus.ACTIVE,
            total_orders=0,
            total_spent=0,
            average_order_value=0,
            registration_source="admin"
        )
        self._db.add(customer)
        self._db.commit()
        self._db.refresh(customer)

        if data.send_welcome_email:
            self._email.send_welcome_email(customer.email, customer.name)

        logger.info(f"✅ Customer created by admin: {customer.email}")

        return customer

    def admin_update_customer(self, customer_id: str, data: AdminCustomerUpdate) -> Customer:
        customer = self.get_customer(customer_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("notes", "customer_type", "phone", "location"):
                continue
            setattr(customer, field, value)

        self._db.commit()
        self._db.refresh(customer)

        logger.info(f"✅ Customer updated by admin: {customer.email}")

        return customer
