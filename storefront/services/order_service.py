"""
==============================================================================
Order Service Module
==============================================================================

Checkout and order management.

Prices are never taken from the client: every line is priced from the
catalog row at the moment the order is created, and the whole order
(order row, items, shipping address, stock decrements and customer
statistics) is written in a single transaction.

Order Creation:
--------------
    ┌──────────────────┐
    │ Validate cart    │  1..max items, quantity ≤ max per item
    └────────┬─────────┘
    ┌────────▼─────────┐
    │ Price each line  │  missing → 404, deleted / short stock → 400
    └────────┬─────────┘
    ┌────────▼─────────┐
    │ Compute totals   │  subtotal, tax on (subtotal - discount), total
    └────────┬─────────┘
    ┌────────▼─────────┐
    │ Resolve customer │  token → email match → guest
    └────────┬─────────┘
    ┌────────▼─────────┐
    │ Persist          │  one transaction, rolled back on any error
    └──────────────────┘

Status Transitions:
------------------
    payment:      PENDING → PAID | FAILED, PAID → REFUNDED, FAILED → PENDING
    fulfillment:  UNFULFILLED → FULFILLED | PARTIAL | SCHEDULED
                  FULFILLED → UNFULFILLED
                  PARTIAL → FULFILLED | UNFULFILLED
                  SCHEDULED → FULFILLED | UNFULFILLED | PARTIAL

==============================================================================
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, selectinload

from storefront.config import get_settings
from storefront.core import exceptions
from storefront.db.models import (
    Customer,
    FulfillmentStatus,
    Order,
    OrderItem,
    PaymentStatus,
    Product,
    Section,
    ShippingAddress,
)
from storefront.schemas.common import Pagination
from storefront.schemas.order import (
    OrderCreate,
    OrderCustomerInput,
    OrderFilters,
    OrderItemCreate,
    OrderUpdate,
    ShippingAddressInput,
)
from storefront.services.cache_service import CacheService, get_cache_service
from storefront.services.product_service import invalidate_product_cache, sync_stock_state
from storefront.utils.clock import epoch_millis, utc_now
from storefront.utils.pricing import (
    calculate_line_total,
    calculate_order_pricing,
    round_money,
    validate_shipping_cost,
)


logger = logging.getLogger(__name__)


PAYMENT_TRANSITIONS: Dict[PaymentStatus, Tuple[PaymentStatus, ...]] = {
    PaymentStatus.PENDING: (PaymentStatus.PAID, PaymentStatus.FAILED),
    PaymentStatus.PAID: (PaymentStatus.REFUNDED,),
    PaymentStatus.FAILED: (PaymentStatus.PENDING,),
    PaymentStatus.REFUNDED: (),
}

FULFILLMENT_TRANSITIONS: Dict[FulfillmentStatus, Tuple[FulfillmentStatus, ...]] = {
    FulfillmentStatus.UNFULFILLED: (
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.PARTIAL,
        FulfillmentStatus.SCHEDULED,
    ),
    FulfillmentStatus.FULFILLED: (FulfillmentStatus.UNFULFILLED,),
    FulfillmentStatus.PARTIAL: (FulfillmentStatus.FULFILLED, FulfillmentStatus.UNFULFILLED),
    FulfillmentStatus.SCHEDULED: (
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.UNFULFILLED,
        FulfillmentStatus.PARTIAL,
    ),
}

CSV_HEADERS = [
    "Order Number",
    "Customer Name",
    "Customer Email",
    "Date",
    "Section",
    "Payment Status",
    "Fulfillment Status",
    "Items Count",
    "Total",
]

EXPORT_LIMIT = 10000


def validate_payment_transition(current: PaymentStatus, new: PaymentStatus) -> None:
    if new not in PAYMENT_TRANSITIONS.get(current, ()):
        raise exceptions.validation_error(
            f"Cannot change payment status from {current.value} to {new.value}"
        )


def validate_fulfillment_transition(current: FulfillmentStatus, new: FulfillmentStatus) -> None:
    if new not in FULFILLMENT_TRANSITIONS.get(current, ()):
        raise exceptions.validation_error(
            f"Cannot change fulfillment status from {current.value} to {new.value}"
        )


class PricedLine:
    """A cart line priced from the catalog."""

    __slots__ = ("product", "quantity", "variant_id", "price", "total")

    def __init__(self, product: Product, quantity: int, variant_id: Optional[str]) -> None:
        self.product = product
        self.quantity = quantity
        self.variant_id = variant_id
        self.price = round_money(product.price)
        self.total = calculate_line_total(self.price, quantity)


class OrderService:
    """
    Service for checkout and order management.

    Example:
        >>> service = OrderService(db_session)
        >>> order = service.create_order(order_create)
        >>> service.update_payment_status(order.id, PaymentStatus.PAID)
    """

    def __init__(self, db: Session, cache: Optional[CacheService] = None) -> None:
        self._db = db
        self._cache = cache or get_cache_service()
        self._settings = get_settings()

    # =========================================================================
    # CREATION
    # =========================================================================

    def create_order(
        self,
        data: OrderCreate,
        created_by: Optional[str] = None,
        customer: Optional[Customer] = None
    ) -> Order:
        """
        Create an order atomically.

        Args:
            data: Cart, contact details and shipping address
            created_by: Staff user placing the order, if any
            customer: Authenticated customer, if any

        Returns:
            The persisted order with items and shipping address

        Raises:
            AppException: VALIDATION_ERROR for cart problems,
                PRODUCT_NOT_FOUND for unknown products,
                CONFLICT if the order number was taken concurrently
        """
        lines = self._price_cart(data.items)

        section = data.section or lines[0].product.section

        discount = 0.0
        if data.discount_code:
            logger.warning(
                f"⚠️ Discount code {data.discount_code!r} ignored: discounts are not supported"
            )

        shipping_cost = validate_shipping_cost(0)

        pricing = calculate_order_pricing(
            (line.total for line in lines),
            self._settings.tax_rate,
            discount=discount,
            shipping_cost=shipping_cost
        )

        linked_customer = customer or self._db.query(Customer).filter(
            Customer.email == data.customer.email,
            Customer.deleted_at.is_(None)
        ).first()

        order_number = self._next_order_number()
        now = utc_now()

        order = Order(
            order_number=order_number,
            customer_id=linked_customer.id if linked_customer else None,
            customer_email=data.customer.email,
            customer_name=data.customer.name.strip(),
            customer_phone=data.customer.phone,
            guest_order=linked_customer is None,
            guest_token=None if linked_customer else f"guest-{epoch_millis()}",
            section=section,
            payment_status=PaymentStatus.PENDING,
            fulfillment_status=FulfillmentStatus.UNFULFILLED,
            subtotal=pricing["subtotal"],
            tax=pricing["tax"],
            discount=pricing["discount"],
            shipping_cost=pricing["shipping_cost"],
            total=pricing["total"],
            currency=self._settings.default_currency,
            payment_method=data.payment_method,
            notes=data.notes,
            tags=list(data.tags),
            order_date=now,
            created_by=created_by
        )

        for line in lines:
            order.items.append(OrderItem(
                product_id=line.product.id,
                product_name=line.product.display_name,
                sku=line.product.sku,
                variant_id=line.variant_id,
                quantity=line.quantity,
                price=line.price,
                total=line.total
            ))

        if data.shipping_address:
            order.shipping_address = self._build_shipping_address(data.shipping_address)

        try:
            self._db.add(order)

            for line in lines:
                line.product.stock_quantity -= line.quantity
                sync_stock_state(line.product)

            if linked_customer:
                self._add_to_customer_stats(linked_customer, pricing["total"], now)

            self._db.commit()

        except IntegrityError as e:
            self._db.rollback()
            logger.error(f"Order creation failed on integrity error: {e.orig}")
            raise exceptions.conflict(
                "Order number already exists. Please retry.",
                {"order_number": order_number}
            )
        except Exception:
            self._db.rollback()
            raise

        self._db.refresh(order)

        for touched in {line.product.section for line in lines}:
            invalidate_product_cache(self._cache, touched)

        logger.info(
            f"✅ Order created: {order.order_number} "
            f"({'guest' if order.guest_order else order.customer_id}, total {order.total})"
        )

        return order

    def _price_cart(self, items: List[OrderItemCreate]) -> List[PricedLine]:
        """Load and validate every product in the cart."""
        if not items:
            raise exceptions.validation_error("At least one product is required")

        if len(items) > self._settings.max_items_per_order:
            raise exceptions.validation_error(
                f"Maximum {self._settings.max_items_per_order} items allowed per order"
            )

        lines: List[PricedLine] = []
        requested: Dict[str, int] = {}

        for item in items:
            product = self._db.query(Product).filter(
                Product.id == item.product_id
            ).with_for_update().first()

            if not product:
                raise exceptions.not_found("Product", item.product_id)

            name = product.display_name

            if product.is_deleted:
                raise exceptions.validation_error(f"Product is no longer available: {name}")

            already = requested.get(product.id, 0)
            available = product.stock_quantity - already

            if available < item.quantity:
                raise exceptions.validation_error(
                    f'Insufficient stock for "{name}". '
                    f"Only {max(available, 0)} unit(s) available.",
                    {"product_id": product.id, "available": max(available, 0)}
                )

            if item.quantity > self._settings.max_quantity_per_item:
                raise exceptions.validation_error(
                    f'Quantity for "{name}" exceeds maximum allowed '
                    f"({self._settings.max_quantity_per_item})"
                )

            requested[product.id] = already + item.quantity
            lines.append(PricedLine(product, item.quantity, item.variant_id))

        return lines

    def _next_order_number(self) -> str:
        """Last created order's number plus one; "#1001" for the first."""
        last = self._db.query(Order.order_number).order_by(
            Order.created_at.desc()
        ).first()

        next_number = self._settings.order_number_start
        if last and last[0]:
            try:
                next_number = int(last[0].lstrip("#")) + 1
            except ValueError:
                logger.warning(f"Unparseable order number {last[0]!r}, restarting sequence")

        return f"#{next_number}"

    def _build_shipping_address(self, address: ShippingAddressInput) -> ShippingAddress:
        return ShippingAddress(
            full_name=address.full_name.strip(),
            phone=address.phone,
            email=address.email,
            address=address.address.strip(),
            city=address.city.strip(),
            state=address.state,
            postal_code=address.postal_code,
            country=address.country or self._settings.default_country
        )

    @staticmethod
    def _add_to_customer_stats(customer: Customer, total: float, order_date: datetime) -> None:
        customer.total_orders = (customer.total_orders or 0) + 1
        customer.total_spent = round_money((customer.total_spent or 0) + total)
        customer.average_order_value = round_money(customer.total_spent / customer.total_orders)
        customer.last_order_date = order_date

    # =========================================================================
    # READS
    # =========================================================================

    def get_order(self, order_id: str, include_deleted: bool = False) -> Order:
        """
        Raises:
            AppException: ORDER_NOT_FOUND
        """
        query = self._db.query(Order).filter(Order.id == order_id)
        if not include_deleted:
            query = query.filter(Order.deleted_at.is_(None))

        order = query.first()
        if not order:
            raise exceptions.not_found("Order", order_id)
        return order

    def get_order_by_number(self, order_number: str) -> Order:
        if not order_number.startswith("#"):
            order_number = f"#{order_number}"

        order = self._db.query(Order).filter(
            Order.order_number == order_number,
            Order.deleted_at.is_(None)
        ).first()

        if not order:
            raise exceptions.not_found("Order")
        return order

    def filtered_query(self, filters: OrderFilters) -> Query:
        """Non-deleted orders matching the filters, sorted."""
        query = self._db.query(Order).filter(Order.deleted_at.is_(None))

        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(or_(
                Order.order_number.ilike(pattern),
                Order.customer_name.ilike(pattern),
                Order.customer_email.ilike(pattern)
            ))

        if filters.section:
            query = query.filter(Order.section == filters.section)

        if filters.payment_status:
            query = query.filter(Order.payment_status == filters.payment_status)

        if filters.fulfillment_status:
            query = query.filter(Order.fulfillment_status == filters.fulfillment_status)

        if filters.customer_id:
            query = query.filter(Order.customer_id == filters.customer_id)

        if filters.date_from:
            query = query.filter(Order.order_date >= filters.date_from)

        if filters.date_to:
            query = query.filter(Order.order_date <= filters.date_to)

        column = getattr(Order, filters.sort_by)
        query = query.order_by(column.asc() if filters.sort_order == "asc" else column.desc())

        return query

    def list_orders(self, filters: OrderFilters) -> Tuple[List[Order], Dict[str, Any]]:
        """
        Returns:
            Tuple of (orders, pagination dict with total_orders)
        """
        limit = min(filters.limit, self._settings.max_page_size)
        query = self.filtered_query(filters)

        total = query.order_by(None).count()
        orders = query.options(
            selectinload(Order.items),
            selectinload(Order.shipping_address)
        ).offset((filters.page - 1) * limit).limit(limit).all()

        pagination = Pagination.create(total, filters.page, limit).with_navigation("total_orders")

        return orders, pagination

    # =========================================================================
    # UPDATES
    # =========================================================================

    def update_order(self, order_id: str, data: OrderUpdate) -> Order:
        order = self.get_order(order_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get("payment_status") is not None:
            validate_payment_transition(order.payment_status, data.payment_status)
        if updates.get("fulfillment_status") is not None:
            validate_fulfillment_transition(order.fulfillment_status, data.fulfillment_status)

        for field, value in updates.items():
            if value is None and field not in ("notes", "payment_method"):
                continue
            setattr(order, field, value)

        self._db.commit()
        self._db.refresh(order)

        logger.info(f"✅ Order updated: {order.order_number}")

        return order

    def update_payment_status(self, order_id: str, status: PaymentStatus) -> Order:
        order = self.get_order(order_id)
        validate_payment_transition(order.payment_status, status)

        order.payment_status = status
        self._db.commit()
        self._db.refresh(order)

        logger.info(f"Payment status updated for {order.order_number}: {status.value}")

        return order

    def update_fulfillment_status(self, order_id: str, status: FulfillmentStatus) -> Order:
        order = self.get_order(order_id)
        validate_fulfillment_transition(order.fulfillment_status, status)

        order.fulfillment_status = status
        self._db.commit()
        self._db.refresh(order)

        logger.info(f"Fulfillment status updated for {order.order_number}: {status.value}")

        return order

    # =========================================================================
    # DELETION / DUPLICATION
    # =========================================================================

    def delete_order(self, order_id: str, hard: bool = False) -> Order:
        """
        Soft delete an order, or remove it entirely when hard is set.

        Raises:
            AppException: VALIDATION_ERROR for paid or fulfilled orders
        """
        order = self.get_order(order_id, include_deleted=hard)

        if order.payment_status == PaymentStatus.PAID:
            raise exceptions.validation_error(
                "Cannot delete paid orders. Please refund the order first."
            )

        if order.fulfillment_status == FulfillmentStatus.FULFILLED:
            raise exceptions.validation_error(
                "Cannot delete orders that have been shipped or delivered"
            )

        if hard:
            self._db.delete(order)
            logger.warning(f"🗑️ Order hard deleted: {order.order_number}")
        else:
            order.deleted_at = utc_now()
            logger.info(f"🗑️ Order soft deleted: {order.order_number}")

        self._db.commit()

        return order

    def duplicate_order(self, order_id: str, created_by: Optional[str] = None) -> Order:
        """Place a new order with the same customer, items and address."""
        original = self.get_order(order_id)

        if any(item.product_id is None for item in original.items):
            raise exceptions.validation_error(
                "Order contains products that no longer exist and cannot be duplicated"
            )

        address = original.shipping_address
        data = OrderCreate(
            customer=OrderCustomerInput(
                name=original.customer_name,
                email=original.customer_email,
                phone=original.customer_phone
            ),
            items=[
                OrderItemCreate(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    variant_id=item.variant_id
                )
                for item in original.items
            ],
            section=original.section,
            shipping_address=ShippingAddressInput(
                full_name=address.full_name,
                phone=address.phone,
                email=address.email,
                address=address.address,
                city=address.city,
                state=address.state,
                postal_code=address.postal_code,
                country=address.country
            ) if address else None,
            notes=f"Duplicate of {original.order_number}" if original.notes else None,
            tags=list(original.tags or []),
            payment_method=original.payment_method
        )

        duplicate = self.create_order(data, created_by=created_by)

        logger.info(f"Order duplicated: {original.order_number} → {duplicate.order_number}")

        return duplicate

    # =========================================================================
    # REPORTING
    # =========================================================================

    def get_order_stats(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        section: Optional[Section] = None
    ) -> Dict[str, Any]:
        """
        Aggregate counts and revenue over non-deleted orders.

        Returns:
            Dict with overview, payment_status, fulfillment_status and by_section
        """
        conditions = [Order.deleted_at.is_(None)]
        if section:
            conditions.append(Order.section == section)
        if date_from:
            conditions.append(Order.order_date >= date_from)
        if date_to:
            conditions.append(Order.order_date <= date_to)

        total_orders, total_revenue = self._db.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0)
        ).filter(*conditions).one()

        payment_status = {status.value: 0 for status in PaymentStatus}
        for status, count in self._db.query(
            Order.payment_status, func.count(Order.id)
        ).filter(*conditions).group_by(Order.payment_status):
            payment_status[status.value] = count

        fulfillment_status = {status.value: 0 for status in FulfillmentStatus}
        for status, count in self._db.query(
            Order.fulfillment_status, func.count(Order.id)
        ).filter(*conditions).group_by(Order.fulfillment_status):
            fulfillment_status[status.value] = count

        by_section = {s.value: {"orders": 0, "revenue": 0.0} for s in Section}
        for row_section, count, revenue in self._db.query(
            Order.section,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0)
        ).filter(*conditions).group_by(Order.section):
            by_section[row_section.value] = {"orders": count, "revenue": round_money(revenue)}

        total_revenue = round_money(total_revenue)

        return {
            "overview": {
                "total_orders": total_orders,
                "total_revenue": total_revenue,
                "average_order_value": (
                    round_money(total_revenue / total_orders) if total_orders else 0.0
                ),
            },
            "payment_status": payment_status,
            "fulfillment_status": fulfillment_status,
            "by_section": by_section,
        }

    def export_orders_csv(self, filters: OrderFilters) -> str:
        """Every order matching the filters (up to the export limit) as CSV."""
        orders = self.filtered_query(filters).options(
            selectinload(Order.items)
        ).limit(EXPORT_LIMIT).all()

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)

        for order in orders:
            writer.writerow([
                order.order_number,
                order.customer_name,
                order.customer_email,
                order.order_date.strftime("%Y-%m-%d"),
                order.section.value,
                order.payment_status.value,
                order.fulfillment_status.value,
                order.items_count,
                f"{order.total:.2f}",
            ])

        logger.info(f"Exported {len(orders)} orders to CSV")

        return buffer.getvalue()
