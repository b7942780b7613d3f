"""
==============================================================================
Product Catalog Endpoints
==============================================================================

Catalog management for staff. Every route requires a staff token.

Access:
-------
    list / get               any staff user
    create / update / images ADMIN or MANAGER (own section)
    delete / bulk            ADMIN

==============================================================================
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from storefront.core.dependencies import get_current_user, require_admin, require_catalog_manager
from storefront.db.database import get_db
from storefront.db.models import ProductAvailability, ProductStatus, Section, User
from storefront.schemas.common import MessageResponse
from storefront.schemas.product import (
    BulkDeleteRequest,
    BulkOperationResponse,
    BulkUpdateRequest,
    ProductCreate,
    ProductDetail,
    ProductFilters,
    ProductImageDetail,
    ProductImagesResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    ReorderImagesRequest,
)
from storefront.services.cache_service import CacheService, get_cache_service
from storefront.services.product_service import ProductService
from storefront.services.storage_service import StorageService, get_storage_service
from storefront.services.upload_service import UploadService


router = APIRouter(prefix="/products", tags=["Products"])


class ProductController:
    """Controller for catalog operations."""

    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self._db = db
        self._service = ProductService(db, cache)

    def list(self, user: User, filters: ProductFilters) -> ProductListResponse:
        return ProductListResponse(**self._service.list_products(filters, user))

    def get(self, user: User, product_id: str) -> ProductResponse:
        product = self._service.get_product(product_id, user)
        return ProductResponse(product=ProductDetail.from_model(product))

    def create(self, user: User, request: ProductCreate) -> ProductResponse:
        product = self._service.create_product(request, user)
        return ProductResponse(
            message="Product created successfully",
            product=ProductDetail.from_model(product)
        )

    def update(self, user: User, product_id: str, request: ProductUpdate) -> ProductResponse:
        product = self._service.update_product(product_id, request, user)
        return ProductResponse(
            message="Product updated successfully",
            product=ProductDetail.from_model(product)
        )

    def delete(self, user: User, product_id: str, force: bool) -> MessageResponse:
        self._service.delete_product(product_id, user, force=force)
        return MessageResponse(message="Product deleted successfully")

    def bulk_update(self, user: User, request: BulkUpdateRequest) -> BulkOperationResponse:
        return BulkOperationResponse(
            **self._service.bulk_update(request.product_ids, request.updates, user)
        )

    def bulk_delete(self, user: User, request: BulkDeleteRequest) -> BulkOperationResponse:
        return BulkOperationResponse(
            **self._service.bulk_delete(request.product_ids, user, force=request.force)
        )

    async def upload_images(
        self,
        user: User,
        product_id: str,
        files: List[UploadFile],
        storage: StorageService
    ) -> ProductImagesResponse:
        self._service.get_product(product_id, user)
        contents = [(f.filename or "", await f.read()) for f in files]
        images = UploadService(self._db, storage).upload_product_images(product_id, contents)
        return ProductImagesResponse(
            images=[ProductImageDetail.model_validate(image) for image in images]
        )

    def reorder_images(
        self,
        user: User,
        product_id: str,
        request: ReorderImagesRequest,
        storage: StorageService
    ) -> ProductImagesResponse:
        self._service.get_product(product_id, user)
        images = UploadService(self._db, storage).reorder_product_images(
            product_id,
            request.image_ids
        )
        return ProductImagesResponse(
            images=[ProductImageDetail.model_validate(image) for image in images]
        )

    def delete_image(
        self,
        user: User,
        product_id: str,
        image_id: str,
        storage: StorageService
    ) -> MessageResponse:
        self._service.get_product(product_id, user)
        UploadService(self._db, storage).delete_product_image(image_id, product_id)
        return MessageResponse(message="Image deleted successfully")


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    section: Optional[Section] = Query(None),
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
    availability: Optional[ProductAvailability] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_stock: Optional[int] = Query(None, ge=0),
    max_stock: Optional[int] = Query(None, ge=0),
    tags: Optional[str] = Query(None, description="Comma separated"),
    collections: Optional[str] = Query(None, description="Comma separated"),
    category: Optional[str] = Query(None, description="Cafe category"),
    caffeine_content: Optional[str] = Query(None),
    arrangement_type: Optional[str] = Query(None, description="Flowers arrangement type"),
    author: Optional[str] = Query(None, description="Books author, partial match"),
    format: Optional[str] = Query(None, description="Books format"),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    """Catalog list; managers only see their own section."""
    filters = ProductFilters(
        page=page,
        limit=limit,
        search=search,
        section=section,
        status=status_filter,
        availability=availability,
        min_price=min_price,
        max_price=max_price,
        min_stock=min_stock,
        max_stock=max_stock,
        tags=tags,
        collections=collections,
        category=category,
        caffeine_content=caffeine_content,
        arrangement_type=arrangement_type,
        author=author,
        format=format,
        sort_by=sort_by,
        sort_order=sort_order
    )
    return ProductController(db, cache).list(user, filters)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    request: ProductCreate,
    user: User = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    return ProductController(db, cache).create(user, request)


@router.patch("/bulk", response_model=BulkOperationResponse)
async def bulk_update_products(
    request: BulkUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    """Apply the same update to many products; failures are reported per product."""
    return ProductController(db, cache).bulk_update(admin, request)


@router.delete("/bulk", response_model=BulkOperationResponse)
async def bulk_delete_products(
    request: BulkDeleteRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    return ProductController(db, cache).bulk_delete(admin, request)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ProductController(db).get(user, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    request: ProductUpdate,
    user: User = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    return ProductController(db, cache).update(user, product_id, request)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    force: bool = Query(False, description="Hard delete even with open orders"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service)
):
    """
    Delete a product.

    Products in unfulfilled or partially fulfilled orders are refused
    unless force is set.
    """
    return ProductController(db, cache).delete(admin, product_id, force)


@router.post(
    "/{product_id}/images",
    response_model=ProductImagesResponse,
    status_code=status.HTTP_201_CREATED
)
async def upload_product_images(
    product_id: str,
    files: List[UploadFile] = File(...),
    user: User = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    """Upload up to 10 images per product (JPG, PNG or WEBP, at least 800x800)."""
    return await ProductController(db).upload_images(user, product_id, files, storage)


@router.put("/{product_id}/images/reorder", response_model=ProductImagesResponse)
async def reorder_product_images(
    product_id: str,
    request: ReorderImagesRequest,
    user: User = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    return ProductController(db).reorder_images(user, product_id, request, storage)


@router.delete("/{product_id}/images/{image_id}", response_model=MessageResponse)
async def delete_product_image(
    product_id: str,
    image_id: str,
    user: User = Depends(require_catalog_manager),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    return ProductController(db).delete_image(user, product_id, image_id, storage)
