"""
==============================================================================
Upload Service Module
==============================================================================

Product image uploads.

Every accepted file is re-encoded as WEBP in three sizes and stored in
object storage:

    original   fit inside 1200x1200, never enlarged, quality 90
    medium     cover 600x600, quality 85
    thumb      cover 200x200, quality 80

Object keys: <prefix>/products/<product_id>/<kind>-<uuid>-<ms>.webp

==============================================================================
"""

from __future__ import annotations

import io
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.core import exceptions
from storefront.db.models import Product, ProductImage
from storefront.services.storage_service import StorageService, get_storage_service
from storefront.utils.clock import epoch_millis


logger = logging.getLogger(__name__)


ALLOWED_FORMATS = ("jpg", "jpeg", "png", "webp")

# Pillow reports these format names for the allowed extensions
PILLOW_FORMATS = {"JPEG", "PNG", "WEBP"}

WEBP_CONTENT_TYPE = "image/webp"


@dataclass(frozen=True)
class ImageVariant:
    kind: str
    size: int
    quality: int
    cover: bool


VARIANTS = (
    ImageVariant("original", 1200, 90, cover=False),
    ImageVariant("medium", 600, 85, cover=True),
    ImageVariant("thumb", 200, 80, cover=True),
)


def render_variant(image: Image.Image, variant: ImageVariant) -> bytes:
    """Resize a decoded image for one variant and encode it as WEBP."""
    if variant.cover:
        resized = ImageOps.fit(image, (variant.size, variant.size), Image.LANCZOS)
    else:
        resized = image.copy()
        # thumbnail() only ever shrinks
        resized.thumbnail((variant.size, variant.size), Image.LANCZOS)

    buffer = io.BytesIO()
    resized.save(buffer, format="WEBP", quality=variant.quality)
    return buffer.getvalue()


class UploadService:
    """
    Image validation, processing and storage for product galleries.

    Example:
        >>> service = UploadService(db_session)
        >>> images = service.upload_product_images(product_id, [("front.jpg", data)])
    """

    def __init__(self, db: Session, storage: Optional[StorageService] = None) -> None:
        self._db = db
        self._storage = storage or get_storage_service()
        self._settings = get_settings()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_file(self, filename: str, data: bytes) -> Image.Image:
        """
        Check size, format and dimensions of one upload.

        Returns:
            The decoded image, converted for WEBP encoding

        Raises:
            AppException: VALIDATION_ERROR naming the failed rule
        """
        max_size = self._settings.max_file_size_bytes
        if len(data) > max_size:
            raise exceptions.validation_error(
                f"File size exceeds {max_size // (1024 * 1024)}MB limit"
            )

        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        invalid_format = exceptions.validation_error(
            f"Invalid file format. Allowed: {', '.join(ALLOWED_FORMATS)}"
        )
        if extension not in ALLOWED_FORMATS:
            raise invalid_format

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError):
            raise invalid_format

        if image.format not in PILLOW_FORMATS:
            raise invalid_format

        minimum = self._settings.min_image_dimension
        width, height = image.size
        if width < minimum or height < minimum:
            raise exceptions.validation_error(
                f"Image dimensions must be at least {minimum}x{minimum}px",
                {"width": width, "height": height}
            )

        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")

        return image

    # =========================================================================
    # UPLOAD
    # =========================================================================

    def _get_product(self, product_id: str) -> Product:
        product = self._db.query(Product).filter(
            Product.id == product_id,
            Product.deleted_at.is_(None)
        ).first()
        if not product:
            raise exceptions.not_found("Product", product_id)
        return product

    def _store_variants(self, image: Image.Image, product_id: str, stored: List[str]) -> dict:
        """Upload every variant of one image, recording each key in ``stored``."""
        unique_id = uuid.uuid4()
        timestamp = epoch_millis()
        prefix = self._settings.s3_base_prefix.strip("/")

        urls = {}
        for variant in VARIANTS:
            key = f"{prefix}/products/{product_id}/{variant.kind}-{unique_id}-{timestamp}.webp"
            try:
                urls[variant.kind] = self._storage.upload(
                    key,
                    render_variant(image, variant),
                    WEBP_CONTENT_TYPE
                )
            except (BotoCoreError, ClientError) as e:
                logger.error(f"❌ Failed to upload {key}: {e}")
                self._discard(stored)
                raise exceptions.internal_error("Failed to upload image")
            stored.append(key)

        return urls

    def _discard(self, keys: List[str]) -> None:
        """Best-effort removal of objects written by a failed batch."""
        for key in keys:
            try:
                self._storage.delete(key)
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Failed to remove orphaned upload {key}: {e}")
        if keys:
            logger.warning(f"⚠️ Removed {len(keys)} objects from a failed upload batch")

    def upload_product_images(
        self,
        product_id: str,
        files: Sequence[Tuple[str, bytes]]
    ) -> List[ProductImage]:
        """
        Validate, process and store a batch of images for one product.

        All files are validated before anything is uploaded, so a bad file
        rejects the whole batch.

        Args:
            product_id: Target product
            files: (filename, content) pairs

        Raises:
            AppException: VALIDATION_ERROR for limit, size, format or
                dimension violations; PRODUCT_NOT_FOUND; INTERNAL_ERROR when
                storage fails, after removing the objects already written
        """
        self._get_product(product_id)

        if not files:
            raise exceptions.validation_error("No files uploaded")

        existing = self._db.query(ProductImage).filter(
            ProductImage.product_id == product_id
        ).count()

        limit = self._settings.max_files_per_product
        if existing + len(files) > limit:
            raise exceptions.validation_error(
                f"Maximum {limit} images allowed per product",
                {"existing": existing, "uploaded": len(files)}
            )

        decoded = [self.validate_file(filename, data) for filename, data in files]

        images = []
        stored: List[str] = []
        try:
            for index, image in enumerate(decoded):
                urls = self._store_variants(image, product_id, stored)
                record = ProductImage(
                    product_id=product_id,
                    original_url=urls["original"],
                    medium_url=urls["medium"],
                    thumbnail_url=urls["thumb"],
                    alt_text=f"{product_id} image {index + 1}",
                    position=existing + index
                )
                self._db.add(record)
                images.append(record)
        except exceptions.AppException:
            self._db.rollback()
            raise

        self._db.commit()
        for record in images:
            self._db.refresh(record)

        logger.info(f"✅ Uploaded {len(images)} images for product {product_id}")

        return images

    # =========================================================================
    # DELETE / REORDER
    # =========================================================================

    def delete_product_image(self, image_id: str, product_id: Optional[str] = None) -> None:
        """
        Remove an image and its stored variants.

        Storage failures are logged; the database row is removed regardless
        and the remaining images are renumbered from 0.
        """
        query = self._db.query(ProductImage).filter(ProductImage.id == image_id)
        if product_id:
            query = query.filter(ProductImage.product_id == product_id)
        image = query.first()

        if not image:
            raise exceptions.not_found("Image", image_id)

        for url in (image.original_url, image.medium_url, image.thumbnail_url):
            key = self._storage.key_from_url(url) or url
            try:
                self._storage.delete(key)
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Failed to delete image from storage: {key}: {e}")

        owner_id = image.product_id
        self._db.delete(image)
        self._db.flush()

        remaining = self._db.query(ProductImage).filter(
            ProductImage.product_id == owner_id
        ).order_by(ProductImage.position.asc()).all()
        for position, remaining_image in enumerate(remaining):
            remaining_image.position = position

        self._db.commit()

        logger.info(f"🗑️ Deleted image {image_id} of product {owner_id}")

    def reorder_product_images(self, product_id: str, image_ids: List[str]) -> List[ProductImage]:
        """
        Set image positions from the order of ``image_ids``.

        Raises:
            AppException: VALIDATION_ERROR unless image_ids is exactly the
                product's set of images
        """
        self._get_product(product_id)

        images = self._db.query(ProductImage).filter(
            ProductImage.product_id == product_id
        ).all()
        by_id = {image.id: image for image in images}

        if len(image_ids) != len(images) or set(image_ids) != set(by_id):
            raise exceptions.validation_error("Image IDs do not match product images")

        for position, image_id in enumerate(image_ids):
            by_id[image_id].position = position

        self._db.commit()

        return sorted(images, key=lambda image: image.position)
