"""
==============================================================================
Guest Order Service Module
==============================================================================

Orders placed without an account.

A checkout that matches no customer is stored as a guest order keyed by
email. Guests can look such an order up by email and order number, and
when they later register with the same email the orders are moved onto
the new account.

==============================================================================
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.core import exceptions
from storefront.core.security import SecurityManager, get_security_manager
from storefront.db.models import Customer, Order
from storefront.utils.pricing import round_money


logger = logging.getLogger(__name__)


def normalize_order_number(order_number: str) -> str:
    """Accept "1001" as well as "#1001"."""
    order_number = order_number.strip()
    if not order_number.startswith("#"):
        order_number = f"#{order_number}"
    return order_number


class GuestOrderService:
    """
    Guest order lookup, linking and guest tokens.

    Example:
        >>> service = GuestOrderService(db_session)
        >>> service.get_guest_order_count("jane@example.com")
        2
        >>> service.link_guest_orders_to_customer(customer.id, customer.email)
        2
    """

    def __init__(
        self,
        db: Session,
        security: Optional[SecurityManager] = None
    ) -> None:
        self._db = db
        self._security = security or get_security_manager()

    def _guest_orders(self, email: str):
        return self._db.query(Order).filter(
            Order.customer_email == email.strip().lower(),
            Order.customer_id.is_(None),
            Order.guest_order.is_(True)
        )

    # =========================================================================
    # LINKING
    # =========================================================================

    def link_guest_orders_to_customer(
        self,
        customer_id: str,
        email: str,
        commit: bool = True
    ) -> int:
        """
        Move every guest order placed with this email onto a customer.

        The customer's order statistics are recomputed from all of their
        orders afterwards.

        Returns:
            Number of orders linked
        """
        orders = self._guest_orders(email).all()

        if not orders:
            logger.debug(f"No guest orders found for {email}")
            return 0

        for order in orders:
            order.customer_id = customer_id
            order.guest_order = False
        self._db.flush()

        customer = self._db.query(Customer).filter(Customer.id == customer_id).first()
        if customer:
            self.recalculate_customer_stats(customer)
            customer.created_from_guest = True

        if commit:
            self._db.commit()

        logger.info(f"✅ Linked {len(orders)} guest orders to customer {customer_id}")

        return len(orders)

    def recalculate_customer_stats(self, customer: Customer) -> None:
        """Rebuild order totals from the customer's non-deleted orders."""
        total_orders, total_spent, last_order_date = self._db.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.max(Order.order_date)
        ).filter(
            Order.customer_id == customer.id,
            Order.deleted_at.is_(None)
        ).one()

        customer.total_orders = total_orders
        customer.total_spent = round_money(total_spent)
        customer.average_order_value = (
            round_money(float(total_spent) / total_orders) if total_orders else 0.0
        )
        customer.last_order_date = last_order_date

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def lookup_guest_order(self, email: str, order_number: str) -> Tuple[Order, bool]:
        """
        Find an order by the email it was placed with and its number.

        Returns:
            Tuple of (order, has_account)

        Raises:
            AppException: ORDER_NOT_FOUND when nothing matches
        """
        email = email.strip().lower()
        order_number = normalize_order_number(order_number)

        order = self._db.query(Order).filter(
            Order.customer_email == email,
            Order.order_number == order_number,
            Order.deleted_at.is_(None)
        ).first()

        if not order:
            raise exceptions.AppException(
                f"Order with email {email} and order number {order_number} not found",
                "ORDER_NOT_FOUND",
                404
            )

        logger.info(f"Guest order lookup: {order_number} for {email}")

        return order, order.customer_id is not None

    def has_guest_orders(self, email: str) -> bool:
        return self.get_guest_order_count(email) > 0

    def get_guest_order_count(self, email: str) -> int:
        return self._guest_orders(email).count()

    # =========================================================================
    # GUEST TOKENS
    # =========================================================================

    def generate_guest_token(self, device_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Issue a token identifying an anonymous shopper.

        Returns:
            Dict with guest_token, guest_id and expires_in (seconds)
        """
        guest_id = f"guest-{secrets.token_hex(16)}"

        data: Dict[str, Any] = {"sub": guest_id}
        if device_id:
            data["device_id"] = device_id

        return {
            "guest_token": self._security.create_guest_token(data),
            "guest_id": guest_id,
            "expires_in": self._security.get_guest_token_expire_seconds(),
        }

    def verify_guest_token(self, token: str) -> Optional[Dict[str, Any]]:
        return self._security.verify_token(token, SecurityManager.TOKEN_TYPE_GUEST)
