"""
==============================================================================
Product Schemas Module
==============================================================================

Request and response schemas for the product catalog.

Section attributes are open objects: the keys listed here are the ones the
catalog filters on or displays; anything else the client sends is kept.

==============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.db.models import (
    Product,
    ProductAvailability,
    ProductStatus,
    Section,
)
from storefront.utils.validators import SkuValidator


_sku_validator = SkuValidator()


# =============================================================================
# SECTION ATTRIBUTES
# =============================================================================

class CafeAttributes(BaseModel):
    category: Optional[str] = None
    origin: Optional[str] = None
    roast_level: Optional[str] = None
    caffeine_content: Optional[str] = None
    size: Optional[str] = None
    temperature: Optional[str] = None
    allergens: Optional[List[str]] = None
    calories: Optional[int] = Field(default=None, ge=0)

    class Config:
        extra = "allow"


class FlowersAttributes(BaseModel):
    arrangement_type: Optional[str] = None
    occasion: Optional[str] = None
    colors: Optional[List[str]] = None
    flower_types: Optional[List[str]] = None
    size: Optional[str] = None
    seasonality: Optional[str] = None
    care_instructions: Optional[str] = None
    vase_included: Optional[bool] = None

    class Config:
        extra = "allow"


class BooksAttributes(BaseModel):
    author: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publish_date: Optional[str] = None
    language: Optional[str] = None
    page_count: Optional[int] = Field(default=None, ge=0)
    format: Optional[str] = None
    genre: Optional[str] = None
    condition: Optional[str] = None
    edition: Optional[str] = None

    class Config:
        extra = "allow"


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ProductCreate(BaseModel):
    """New catalog product."""
    section: Section
    sku: str
    name: Optional[str] = Field(default=None, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    price: float = Field(..., ge=0.01, le=999999)
    compare_at_price: Optional[float] = Field(default=None, ge=0, le=999999)
    cost_price: Optional[float] = Field(default=None, ge=0, le=999999)
    stock_quantity: int = Field(default=0, ge=0)
    track_quantity: bool = True
    continue_selling_out_of_stock: bool = False
    status: ProductStatus = ProductStatus.DRAFT
    tags: List[str] = Field(default_factory=list)
    collections: List[str] = Field(default_factory=list)
    cafe_attributes: Optional[CafeAttributes] = None
    flowers_attributes: Optional[FlowersAttributes] = None
    books_attributes: Optional[BooksAttributes] = None

    @field_validator("sku")
    @classmethod
    def validate_sku(cls, v: str) -> str:
        is_valid, normalized, error = _sku_validator.validate(v)
        if not is_valid:
            raise ValueError(error)
        return normalized


class ProductUpdate(BaseModel):
    """
    Partial product update.

    Section cannot change once a product exists.
    """
    sku: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0.01, le=999999)
    compare_at_price: Optional[float] = Field(default=None, ge=0, le=999999)
    cost_price: Optional[float] = Field(default=None, ge=0, le=999999)
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    track_quantity: Optional[bool] = None
    continue_selling_out_of_stock: Optional[bool] = None
    status: Optional[ProductStatus] = None
    tags: Optional[List[str]] = None
    collections: Optional[List[str]] = None
    cafe_attributes: Optional[CafeAttributes] = None
    flowers_attributes: Optional[FlowersAttributes] = None
    books_attributes: Optional[BooksAttributes] = None

    @field_validator("sku")
    @classmethod
    def validate_sku(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        is_valid, normalized, error = _sku_validator.validate(v)
        if not is_valid:
            raise ValueError(error)
        return normalized


class BulkUpdateRequest(BaseModel):
    product_ids: List[str] = Field(..., min_length=1, max_length=100)
    updates: ProductUpdate


class BulkDeleteRequest(BaseModel):
    product_ids: List[str] = Field(..., min_length=1, max_length=100)
    force: bool = False


class ReorderImagesRequest(BaseModel):
    image_ids: List[str] = Field(..., min_length=1)


class ProductFilters(BaseModel):
    """Catalog list filters, built from query parameters."""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    search: Optional[str] = None
    section: Optional[Section] = None
    status: Optional[ProductStatus] = None
    availability: Optional[ProductAvailability] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_stock: Optional[int] = None
    max_stock: Optional[int] = None
    tags: Optional[str] = None
    collections: Optional[str] = None
    category: Optional[str] = None
    caffeine_content: Optional[str] = None
    arrangement_type: Optional[str] = None
    author: Optional[str] = None
    format: Optional[str] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: str) -> str:
        allowed = {"name", "title", "price", "created_at", "updated_at"}
        if v not in allowed:
            raise ValueError(f"sort_by must be one of: {', '.join(sorted(allowed))}")
        return v

    @field_validator("sort_order")
    @classmethod
    def validate_sort_order(cls, v: str) -> str:
        v = v.lower()
        if v not in ("asc", "desc"):
            raise ValueError("sort_order must be asc or desc")
        return v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ProductImageDetail(BaseModel):
    id: str
    original_url: str
    medium_url: str
    thumbnail_url: str
    alt_text: Optional[str] = None
    position: int

    class Config:
        from_attributes = True


class ProductDetail(BaseModel):
    id: str
    section: Section
    sku: str
    name: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    price: float
    compare_at_price: Optional[float] = None
    cost_price: Optional[float] = None
    stock_quantity: int
    track_quantity: bool
    continue_selling_out_of_stock: bool
    status: ProductStatus
    availability: ProductAvailability
    tags: List[str] = Field(default_factory=list)
    collections: List[str] = Field(default_factory=list)
    cafe_attributes: Optional[Dict[str, Any]] = None
    flowers_attributes: Optional[Dict[str, Any]] = None
    books_attributes: Optional[Dict[str, Any]] = None
    images: List[ProductImageDetail] = Field(default_factory=list)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_model(cls, product: Product, first_image_only: bool = False) -> "ProductDetail":
        detail = cls.model_validate(product)
        if first_image_only:
            detail.images = detail.images[:1]
        return detail


class ProductResponse(BaseModel):
    success: bool = Field(default=True)
    message: Optional[str] = None
    product: ProductDetail


class ProductListResponse(BaseModel):
    success: bool = Field(default=True)
    products: List[ProductDetail]
    total_items: int
    page: int
    limit: int


class BulkOperationError(BaseModel):
    product_id: str
    error: str


class BulkOperationResponse(BaseModel):
    success: bool = Field(default=True)
    updated: Optional[int] = None
    deleted: Optional[int] = None
    failed: int
    errors: List[BulkOperationError] = Field(default_factory=list)


class ProductImagesResponse(BaseModel):
    success: bool = Field(default=True)
    images: List[ProductImageDetail]
