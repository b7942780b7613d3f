"""
==============================================================================
Product Service Module
==============================================================================

Catalog management for the three store sections.

Section Rules:
-------------
    CAFE     name + cafe_attributes
    FLOWERS  name + flowers_attributes
    BOOKS    title + books_attributes

Availability is derived, never set directly: a product is AVAILABLE while
it has stock or may be sold out of stock, otherwise OUT_OF_STOCK. Every
product has a mirror inventory item kept in step with its stock.

List results are cached in Redis for a few minutes; any catalog write
drops the cached lists.

==============================================================================
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session, selectinload

from storefront.config import get_settings
from storefront.core import exceptions
from storefront.core.exceptions import AppException
from storefront.db.models import (
    FulfillmentStatus,
    InventoryItem,
    InventoryStatus,
    Order,
    OrderItem,
    Product,
    ProductAvailability,
    Section,
    User,
)
from storefront.schemas.product import (
    ProductCreate,
    ProductDetail,
    ProductFilters,
    ProductUpdate,
)
from storefront.services.cache_service import CacheService, get_cache_service
from storefront.utils.clock import utc_now


logger = logging.getLogger(__name__)


LIST_CACHE_PREFIX = "products:list:"

ATTRIBUTE_FIELDS = {
    Section.CAFE: "cafe_attributes",
    Section.FLOWERS: "flowers_attributes",
    Section.BOOKS: "books_attributes",
}

DEFAULT_LOCATION = "Main Warehouse"


# =============================================================================
# STOCK HELPERS
# =============================================================================

def calculate_availability(stock_quantity: int, continue_selling: bool) -> ProductAvailability:
    if stock_quantity > 0 or continue_selling:
        return ProductAvailability.AVAILABLE
    return ProductAvailability.OUT_OF_STOCK


def inventory_status(on_hand: int, reorder_point: int) -> InventoryStatus:
    if on_hand <= 0:
        return InventoryStatus.OUT_OF_STOCK
    if on_hand <= reorder_point:
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.IN_STOCK


def sync_stock_state(product: Product) -> None:
    """Recompute availability and copy the product onto its inventory items."""
    product.availability = calculate_availability(
        product.stock_quantity,
        product.continue_selling_out_of_stock
    )

    for item in product.inventory_items:
        item.product_name = product.display_name
        item.sku = product.sku
        item.on_hand = product.stock_quantity
        item.available = max(product.stock_quantity - (item.committed or 0), 0)
        item.selling_price = product.price
        item.cost_price = product.cost_price or 0
        item.status = inventory_status(item.on_hand, item.reorder_point)


def invalidate_product_cache(cache: CacheService, section: Optional[Section] = None) -> None:
    cache.invalidate_pattern(f"{LIST_CACHE_PREFIX}*")
    if section:
        cache.invalidate_pattern(f"products:{section.value}:*")


def validate_section_data(
    section: Section,
    name: Optional[str],
    title: Optional[str],
    attributes: Optional[Dict[str, Any]]
) -> None:
    """
    Raises:
        AppException: VALIDATION_ERROR naming the missing field
    """
    if section == Section.CAFE:
        if not name:
            raise exceptions.validation_error("Name is required for cafe products")
        if attributes is None:
            raise exceptions.validation_error("Cafe attributes are required for cafe products")

    elif section == Section.FLOWERS:
        if not name:
            raise exceptions.validation_error("Name is required for flower products")
        if attributes is None:
            raise exceptions.validation_error(
                "Flowers attributes are required for flower products"
            )

    elif section == Section.BOOKS:
        if not title:
            raise exceptions.validation_error("Title is required for book products")
        if attributes is None:
            raise exceptions.validation_error("Books attributes are required for book products")


def _dump_attributes(value) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    return value.model_dump(exclude_none=True)


def reject_foreign_attributes(section: Section, fields) -> None:
    """Attribute blocks of other sections never land on a product."""
    own_field = ATTRIBUTE_FIELDS[section]
    for field in sorted(fields):
        if field in ATTRIBUTE_FIELDS.values() and field != own_field:
            raise exceptions.validation_error(
                f"{field} is not allowed for {section.value} products",
                {"field": field, "section": section.value}
            )


class ProductService:
    """
    Service for catalog products.

    Managers only reach products of their assigned section; admins reach
    every section.

    Example:
        >>> service = ProductService(db_session)
        >>> product = service.create_product(product_create, user)
        >>> result = service.list_products(ProductFilters(section=Section.CAFE), user)
    """

    def __init__(self, db: Session, cache: Optional[CacheService] = None) -> None:
        self._db = db
        self._cache = cache or get_cache_service()
        self._settings = get_settings()

    @staticmethod
    def _check_section(user: Optional[User], section: Section) -> None:
        if user is not None and not user.can_access_section(section):
            raise exceptions.section_forbidden(user.assigned_section.value)

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    def create_product(self, data: ProductCreate, user: User) -> Product:
        """
        Create a product and its inventory item.

        Raises:
            AppException: FORBIDDEN outside the manager's section,
                VALIDATION_ERROR for section rule violations,
                CONFLICT for a duplicate SKU
        """
        self._check_section(user, data.section)

        reject_foreign_attributes(
            data.section,
            [field for field in ATTRIBUTE_FIELDS.values() if getattr(data, field) is not None]
        )

        attributes = _dump_attributes(getattr(data, ATTRIBUTE_FIELDS[data.section]))
        validate_section_data(data.section, data.name, data.title, attributes)

        if self._db.query(Product).filter(Product.sku == data.sku).first():
            raise exceptions.conflict(f"SKU {data.sku} already exists", {"sku": data.sku})

        product = Product(
            name=data.name,
            title=data.title,
            description=data.description,
            section=data.section,
            price=data.price,
            compare_at_price=data.compare_at_price,
            cost_price=data.cost_price,
            sku=data.sku,
            stock_quantity=data.stock_quantity,
            track_quantity=data.track_quantity,
            continue_selling_out_of_stock=data.continue_selling_out_of_stock,
            status=data.status,
            tags=list(data.tags),
            collections=list(data.collections),
            cafe_attributes=_dump_attributes(data.cafe_attributes),
            flowers_attributes=_dump_attributes(data.flowers_attributes),
            books_attributes=_dump_attributes(data.books_attributes),
            created_by=user.id,
            updated_by=user.id
        )
        product.inventory_items.append(InventoryItem(
            product_name=product.display_name,
            sku=product.sku,
            section=product.section,
            committed=0,
            incoming=0,
            location=DEFAULT_LOCATION,
            reorder_point=10,
            reorder_quantity=50,
            status=InventoryStatus.OUT_OF_STOCK
        ))
        sync_stock_state(product)

        self._db.add(product)
        self._db.commit()
        self._db.refresh(product)

        invalidate_product_cache(self._cache, product.section)

        logger.info(f"✅ Product created: {product.sku} ({product.section.value}) by {user.email}")

        return product

    def get_product(self, product_id: str, user: Optional[User] = None) -> Product:
        """
        Raises:
            AppException: PRODUCT_NOT_FOUND for missing or deleted products
        """
        product = self._db.query(Product).options(
            selectinload(Product.images)
        ).filter(
            Product.id == product_id,
            Product.deleted_at.is_(None)
        ).first()

        if not product:
            raise exceptions.not_found("Product", product_id)

        self._check_section(user, product.section)

        return product

    def list_products(self, filters: ProductFilters, user: Optional[User] = None) -> Dict[str, Any]:
        """
        Filtered, paginated catalog listing.

        Managers are pinned to their assigned section whatever section the
        filters ask for.

        Returns:
            Dict with products (first image only), total_items, page, limit
        """
        limit = min(filters.limit, self._settings.max_page_size)

        section = filters.section
        if user is not None and user.is_manager and user.assigned_section:
            section = user.assigned_section

        cache_key = self._list_cache_key(filters, section, limit)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Product list cache hit: {cache_key}")
            return cached

        query = self._db.query(Product).filter(Product.deleted_at.is_(None))

        if section:
            query = query.filter(Product.section == section)

        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(or_(
                Product.name.ilike(pattern),
                Product.title.ilike(pattern),
                Product.description.ilike(pattern),
                Product.sku.ilike(pattern)
            ))

        if filters.status:
            query = query.filter(Product.status == filters.status)

        if filters.availability:
            query = query.filter(Product.availability == filters.availability)

        if filters.min_price is not None:
            query = query.filter(Product.price >= filters.min_price)
        if filters.max_price is not None:
            query = query.filter(Product.price <= filters.max_price)

        if filters.min_stock is not None:
            query = query.filter(Product.stock_quantity >= filters.min_stock)
        if filters.max_stock is not None:
            query = query.filter(Product.stock_quantity <= filters.max_stock)

        if filters.tags:
            query = query.filter(self._json_list_contains_any(Product.tags, filters.tags))

        if filters.collections:
            query = query.filter(
                self._json_list_contains_any(Product.collections, filters.collections)
            )

        if filters.category:
            query = query.filter(
                Product.cafe_attributes["category"].as_string() == filters.category
            )
        if filters.caffeine_content:
            query = query.filter(
                Product.cafe_attributes["caffeine_content"].as_string() == filters.caffeine_content
            )
        if filters.arrangement_type:
            query = query.filter(
                Product.flowers_attributes["arrangement_type"].as_string()
                == filters.arrangement_type
            )
        if filters.author:
            query = query.filter(
                Product.books_attributes["author"].as_string().ilike(f"%{filters.author}%")
            )
        if filters.format:
            query = query.filter(
                Product.books_attributes["format"].as_string() == filters.format
            )

        total_items = query.count()

        sort_column = {
            "name": func.coalesce(Product.name, Product.title),
            "title": func.coalesce(Product.title, Product.name),
            "price": Product.price,
            "created_at": Product.created_at,
            "updated_at": Product.updated_at,
        }[filters.sort_by]
        query = query.order_by(
            sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
        )

        products = query.options(selectinload(Product.images)).offset(
            (filters.page - 1) * limit
        ).limit(limit).all()

        result = {
            "products": [
                ProductDetail.from_model(product, first_image_only=True).model_dump(mode="json")
                for product in products
            ],
            "total_items": total_items,
            "page": filters.page,
            "limit": limit,
        }

        self._cache.set(cache_key, result, self._settings.product_cache_ttl_seconds)

        return result

    @staticmethod
    def _json_list_contains_any(column, csv_values: str):
        """Match rows whose JSON string list holds any of the comma separated values."""
        values = [value.strip() for value in csv_values.split(",") if value.strip()]
        text = cast(column, String)
        return or_(*[text.like(f'%{json.dumps(value)}%') for value in values])

    @staticmethod
    def _list_cache_key(filters: ProductFilters, section: Optional[Section], limit: int) -> str:
        params = filters.model_dump(mode="json")
        params["section"] = section.value if section else None
        params["limit"] = limit
        digest = hashlib.sha1(
            json.dumps(params, sort_keys=True).encode("utf-8")
        ).hexdigest()
        return f"{LIST_CACHE_PREFIX}{digest}"

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update_product(self, product_id: str, data: ProductUpdate, user: User) -> Product:
        """
        Apply a partial update.

        Raises:
            AppException: CONFLICT if the new SKU belongs to another product,
                VALIDATION_ERROR if changed attributes break the section rules
        """
        product = self.get_product(product_id, user)
        updates = data.model_dump(exclude_unset=True)

        new_sku = updates.get("sku")
        if new_sku and new_sku != product.sku:
            duplicate = self._db.query(Product).filter(
                Product.sku == new_sku,
                Product.id != product.id
            ).first()
            if duplicate:
                raise exceptions.conflict(
                    f"SKU {new_sku} already exists for another product",
                    {"sku": new_sku}
                )

        reject_foreign_attributes(product.section, updates.keys())

        attribute_fields = set(ATTRIBUTE_FIELDS.values())
        if attribute_fields & updates.keys():
            own_field = ATTRIBUTE_FIELDS[product.section]
            attributes = (
                _dump_attributes(getattr(data, own_field))
                if own_field in updates else getattr(product, own_field)
            )
            validate_section_data(
                product.section,
                updates.get("name", product.name),
                updates.get("title", product.title),
                attributes
            )

        for field, value in updates.items():
            if field in attribute_fields:
                setattr(product, field, _dump_attributes(getattr(data, field)))
            elif value is None and field not in (
                "name", "title", "description", "compare_at_price", "cost_price"
            ):
                continue
            else:
                setattr(product, field, value)

        product.updated_by = user.id
        sync_stock_state(product)

        self._db.commit()
        self._db.refresh(product)

        invalidate_product_cache(self._cache, product.section)

        logger.info(f"✅ Product updated: {product.sku} by {user.email}")

        return product

    # =========================================================================
    # DELETE
    # =========================================================================

    def count_active_orders(self, product_id: str) -> int:
        """Open orders (unfulfilled or partial) containing the product."""
        return self._db.query(func.count(func.distinct(Order.id))).join(
            OrderItem, OrderItem.order_id == Order.id
        ).filter(
            OrderItem.product_id == product_id,
            Order.deleted_at.is_(None),
            Order.fulfillment_status.in_([
                FulfillmentStatus.UNFULFILLED,
                FulfillmentStatus.PARTIAL
            ])
        ).scalar()

    def delete_product(self, product_id: str, user: User, force: bool = False) -> None:
        """
        Soft delete a product, or hard delete it when forced.

        Raises:
            AppException: CONFLICT when open orders contain the product and
                force is not set
        """
        product = self.get_product(product_id, user)

        active_orders = self.count_active_orders(product.id)
        if active_orders and not force:
            raise exceptions.conflict(
                "Cannot delete product with active orders",
                {"active_orders": active_orders}
            )

        section = product.section

        if force:
            # order history keeps its snapshot, only the link goes
            self._db.query(OrderItem).filter(
                OrderItem.product_id == product.id
            ).update({OrderItem.product_id: None}, synchronize_session=False)
            self._db.delete(product)
            logger.warning(f"🗑️ Product hard deleted: {product.sku} by {user.email}")
        else:
            product.deleted_at = utc_now()
            product.updated_by = user.id
            logger.info(f"🗑️ Product soft deleted: {product.sku} by {user.email}")

        self._db.commit()

        invalidate_product_cache(self._cache, section)

    # =========================================================================
    # BULK OPERATIONS
    # =========================================================================

    def bulk_update(
        self,
        product_ids: List[str],
        updates: ProductUpdate,
        user: User
    ) -> Dict[str, Any]:
        """Update each product independently; failures are reported per id."""
        results: Dict[str, Any] = {"updated": 0, "failed": 0, "errors": []}

        for product_id in product_ids:
            try:
                self.update_product(product_id, updates, user)
                results["updated"] += 1
            except AppException as e:
                self._db.rollback()
                results["failed"] += 1
                results["errors"].append({"product_id": product_id, "error": e.message})

        logger.info(f"Bulk update: {results['updated']} updated, {results['failed']} failed")

        return results

    def bulk_delete(
        self,
        product_ids: List[str],
        user: User,
        force: bool = False
    ) -> Dict[str, Any]:
        results: Dict[str, Any] = {"deleted": 0, "failed": 0, "errors": []}

        for product_id in product_ids:
            try:
                self.delete_product(product_id, user, force=force)
                results["deleted"] += 1
            except AppException as e:
                self._db.rollback()
                results["failed"] += 1
                results["errors"].append({"product_id": product_id, "error": e.message})

        logger.info(f"Bulk delete: {results['deleted']} deleted, {results['failed']} failed")

        return results
